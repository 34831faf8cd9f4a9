"""serialstock：批次 / 序列号分配引擎。"""

__version__ = "0.1.0"
