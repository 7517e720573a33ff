# CHIP CONST
DEV_DIR = "/dev"
CHIP_PREFIX = "gpiochip"
SYSFS_GPIO_DEVICES = "/sys/bus/gpio/devices"
UNKNOWN_LABEL = "unknown"
DEFAULT_CONSUMER = "gpiochardev-{pid}"

# CLI CONST
GPIOMON = "gpiomon"
RISING = "rising"
FALLING = "falling"

# LOGGER CONST
ENV_LOG_DIR = "GPIOCHARDEV_LOG_DIR"
