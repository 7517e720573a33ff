"""ctypes rendition of linux/gpio.h, ABI v1 and v2."""

from gpiochardev.uapi import common, v1, v2

__all__ = ["common", "v1", "v2"]
