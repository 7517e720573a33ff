"""Translation between LineConfig and the kernel records of both ABIs."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import timedelta

from gpiochardev.helper.exceptions import ConfigError
from gpiochardev.helper.util import bytes_to_str, str_to_bytes
from gpiochardev.models import (
    Bias,
    Direction,
    Drive,
    EdgeDetection,
    LineConfig,
    LineConfigFlag,
    LineEvent,
    LineEventType,
    LineInfo,
    LineInfoChangeEvent,
    LineInfoChangeType,
)
from gpiochardev.uapi import v1, v2
from gpiochardev.uapi.common import GPIO_MAX_NAME_SIZE, LineChangedType

MAX_LINES = v2.GPIO_V2_LINES_MAX

_CHANGE_TYPES = {
    LineChangedType.REQUESTED: LineInfoChangeType.REQUESTED,
    LineChangedType.RELEASED: LineInfoChangeType.RELEASED,
    LineChangedType.CONFIG: LineInfoChangeType.RECONFIGURED,
}


def validate(config: LineConfig, num_lines: int = 1) -> None:
    """Reject configurations the kernel would refuse with EINVAL."""
    if num_lines < 1 or num_lines > MAX_LINES:
        raise ConfigError(f"number of lines must be between 1 and {MAX_LINES}, got {num_lines}")
    has_direction = config.has(LineConfigFlag.DIRECTION)
    if config.has(LineConfigFlag.DRIVE) and not config.is_output:
        raise ConfigError("drive requires output direction")
    if config.has_edge_detection and not config.is_input:
        raise ConfigError("edge detection requires input direction")
    if config.has(LineConfigFlag.BIAS) and not has_direction:
        raise ConfigError("bias requires a direction")


def pad_values(values: Sequence[int], num_lines: int) -> list[int]:
    """Missing values are inactive, surplus values are dropped."""
    padded = [1 if v else 0 for v in values[:num_lines]]
    padded.extend([0] * (num_lines - len(padded)))
    return padded


def lines_mask(num_lines: int) -> int:
    return (1 << num_lines) - 1


def values_to_bits(values: Sequence[int], num_lines: int) -> int:
    bits = 0
    for idx, value in enumerate(pad_values(values, num_lines)):
        if value:
            bits |= 1 << idx
    return bits


def bits_to_values(bits: int, num_lines: int) -> list[int]:
    return [(bits >> idx) & 1 for idx in range(num_lines)]


def _consumer(consumer: str) -> bytes:
    return str_to_bytes(consumer, GPIO_MAX_NAME_SIZE)


def _debounce_us(debounce: timedelta) -> int:
    return int(debounce / timedelta(microseconds=1))


# ABI v1


def handle_flags(config: LineConfig) -> v1.HandleFlag:
    flags = v1.HandleFlag(0)
    if config.has(LineConfigFlag.ACTIVE_LOW) and config.active_low:
        flags |= v1.HandleFlag.ACTIVE_LOW
    if config.has(LineConfigFlag.DIRECTION):
        if config.direction is Direction.OUTPUT:
            flags |= v1.HandleFlag.OUTPUT
        else:
            flags |= v1.HandleFlag.INPUT
    if config.has(LineConfigFlag.DRIVE):
        if config.drive is Drive.OPEN_DRAIN:
            flags |= v1.HandleFlag.OPEN_DRAIN
        elif config.drive is Drive.OPEN_SOURCE:
            flags |= v1.HandleFlag.OPEN_SOURCE
    if config.has(LineConfigFlag.BIAS):
        if config.bias is Bias.PULL_UP:
            flags |= v1.HandleFlag.BIAS_PULL_UP
        elif config.bias is Bias.PULL_DOWN:
            flags |= v1.HandleFlag.BIAS_PULL_DOWN
        else:
            flags |= v1.HandleFlag.BIAS_DISABLE
    return flags


def event_flags(config: LineConfig) -> v1.EventFlag:
    if not config.has(LineConfigFlag.EDGE_DETECTION):
        return v1.EventFlag(0)
    return {
        EdgeDetection.NONE: v1.EventFlag(0),
        EdgeDetection.RISING: v1.EventFlag.RISING_EDGE,
        EdgeDetection.FALLING: v1.EventFlag.FALLING_EDGE,
        EdgeDetection.BOTH: v1.EventFlag.BOTH_EDGES,
    }[config.edge_detection]


def handle_request(
    offsets: Sequence[int], config: LineConfig, values: Sequence[int], consumer: str
) -> v1.gpiohandle_request:
    request = v1.gpiohandle_request()
    for idx, offset in enumerate(offsets):
        request.lineoffsets[idx] = offset
    request.flags = handle_flags(config)
    if config.is_output:
        for idx, value in enumerate(pad_values(values, len(offsets))):
            request.default_values[idx] = value
    request.consumer_label = _consumer(consumer)
    request.lines = len(offsets)
    return request


def event_request(offset: int, config: LineConfig, consumer: str) -> v1.gpioevent_request:
    request = v1.gpioevent_request()
    request.lineoffset = offset
    request.handleflags = handle_flags(config)
    request.eventflags = event_flags(config)
    request.consumer_label = _consumer(consumer)
    return request


def handle_config(
    config: LineConfig, values: Sequence[int], num_lines: int
) -> v1.gpiohandle_config:
    hc = v1.gpiohandle_config()
    hc.flags = handle_flags(config)
    if config.is_output:
        for idx, value in enumerate(pad_values(values, num_lines)):
            hc.default_values[idx] = value
    return hc


def handle_data(values: Sequence[int], num_lines: int) -> v1.gpiohandle_data:
    data = v1.gpiohandle_data()
    for idx, value in enumerate(pad_values(values, num_lines)):
        data.values[idx] = value
    return data


# ABI v2


def line_flags_v2(config: LineConfig) -> v2.LineFlag:
    flags = v2.LineFlag(0)
    if config.has(LineConfigFlag.ACTIVE_LOW) and config.active_low:
        flags |= v2.LineFlag.ACTIVE_LOW
    if config.has(LineConfigFlag.DIRECTION):
        if config.direction is Direction.OUTPUT:
            flags |= v2.LineFlag.OUTPUT
        else:
            flags |= v2.LineFlag.INPUT
    if config.has(LineConfigFlag.EDGE_DETECTION):
        if config.edge_detection in (EdgeDetection.RISING, EdgeDetection.BOTH):
            flags |= v2.LineFlag.EDGE_RISING
        if config.edge_detection in (EdgeDetection.FALLING, EdgeDetection.BOTH):
            flags |= v2.LineFlag.EDGE_FALLING
    if config.has(LineConfigFlag.DRIVE):
        if config.drive is Drive.OPEN_DRAIN:
            flags |= v2.LineFlag.OPEN_DRAIN
        elif config.drive is Drive.OPEN_SOURCE:
            flags |= v2.LineFlag.OPEN_SOURCE
    if config.has(LineConfigFlag.BIAS):
        if config.bias is Bias.PULL_UP:
            flags |= v2.LineFlag.BIAS_PULL_UP
        elif config.bias is Bias.PULL_DOWN:
            flags |= v2.LineFlag.BIAS_PULL_DOWN
        else:
            flags |= v2.LineFlag.BIAS_DISABLED
    return flags


def line_config_v2(
    config: LineConfig, values: Sequence[int], num_lines: int
) -> v2.gpio_v2_line_config:
    lc = v2.gpio_v2_line_config()
    lc.flags = line_flags_v2(config)
    mask = lines_mask(num_lines)
    num_attrs = 0
    if config.has(LineConfigFlag.DEBOUNCE):
        attr = lc.attrs[num_attrs]
        attr.attr.id = v2.LineAttrId.DEBOUNCE
        attr.attr.debounce_period_us = _debounce_us(config.debounce)
        attr.mask = mask
        num_attrs += 1
    if config.is_output:
        attr = lc.attrs[num_attrs]
        attr.attr.id = v2.LineAttrId.OUTPUT_VALUES
        attr.attr.values = values_to_bits(values, num_lines)
        attr.mask = mask
        num_attrs += 1
    lc.num_attrs = num_attrs
    return lc


def line_request_v2(
    offsets: Sequence[int], config: LineConfig, values: Sequence[int], consumer: str
) -> v2.gpio_v2_line_request:
    request = v2.gpio_v2_line_request()
    for idx, offset in enumerate(offsets):
        request.offsets[idx] = offset
    request.consumer = _consumer(consumer)
    request.config = line_config_v2(config, values, len(offsets))
    request.num_lines = len(offsets)
    return request


def line_values(values: Sequence[int], num_lines: int) -> v2.gpio_v2_line_values:
    return v2.gpio_v2_line_values(
        bits=values_to_bits(values, num_lines), mask=lines_mask(num_lines)
    )


# Decoding


def line_config_from_v1(flags: int) -> LineConfig:
    flags = v1.LineFlag(flags)
    kwargs = {
        "active_low": bool(flags & v1.LineFlag.ACTIVE_LOW),
        "direction": Direction.OUTPUT if flags & v1.LineFlag.IS_OUT else Direction.INPUT,
    }
    if flags & v1.LineFlag.IS_OUT:
        if flags & v1.LineFlag.OPEN_DRAIN:
            kwargs["drive"] = Drive.OPEN_DRAIN
        elif flags & v1.LineFlag.OPEN_SOURCE:
            kwargs["drive"] = Drive.OPEN_SOURCE
        else:
            kwargs["drive"] = Drive.PUSH_PULL
    if flags & v1.LineFlag.BIAS_PULL_UP:
        kwargs["bias"] = Bias.PULL_UP
    elif flags & v1.LineFlag.BIAS_PULL_DOWN:
        kwargs["bias"] = Bias.PULL_DOWN
    elif flags & v1.LineFlag.BIAS_DISABLE:
        kwargs["bias"] = Bias.DISABLED
    return LineConfig.of(**kwargs)


def line_config_from_v2(info: v2.gpio_v2_line_info) -> LineConfig:
    flags = v2.LineFlag(info.flags)
    kwargs = {"active_low": bool(flags & v2.LineFlag.ACTIVE_LOW)}
    if flags & v2.LineFlag.OUTPUT:
        kwargs["direction"] = Direction.OUTPUT
        if flags & v2.LineFlag.OPEN_DRAIN:
            kwargs["drive"] = Drive.OPEN_DRAIN
        elif flags & v2.LineFlag.OPEN_SOURCE:
            kwargs["drive"] = Drive.OPEN_SOURCE
        else:
            kwargs["drive"] = Drive.PUSH_PULL
    elif flags & v2.LineFlag.INPUT:
        kwargs["direction"] = Direction.INPUT
        rising = bool(flags & v2.LineFlag.EDGE_RISING)
        falling = bool(flags & v2.LineFlag.EDGE_FALLING)
        if rising and falling:
            kwargs["edge_detection"] = EdgeDetection.BOTH
        elif rising:
            kwargs["edge_detection"] = EdgeDetection.RISING
        elif falling:
            kwargs["edge_detection"] = EdgeDetection.FALLING
        else:
            kwargs["edge_detection"] = EdgeDetection.NONE
    if flags & v2.LineFlag.BIAS_PULL_UP:
        kwargs["bias"] = Bias.PULL_UP
    elif flags & v2.LineFlag.BIAS_PULL_DOWN:
        kwargs["bias"] = Bias.PULL_DOWN
    elif flags & v2.LineFlag.BIAS_DISABLED:
        kwargs["bias"] = Bias.DISABLED
    for idx in range(min(info.num_attrs, v2.GPIO_V2_LINE_NUM_ATTRS_MAX)):
        attr = info.attrs[idx]
        if attr.id == v2.LineAttrId.DEBOUNCE:
            kwargs["debounce"] = timedelta(microseconds=attr.debounce_period_us)
    return LineConfig.of(**kwargs)


def line_info_from_v1(info: v1.gpioline_info) -> LineInfo:
    return LineInfo(
        offset=info.line_offset,
        name=bytes_to_str(info.name),
        consumer=bytes_to_str(info.consumer),
        used=bool(info.flags & v1.LineFlag.KERNEL),
        config=line_config_from_v1(info.flags),
    )


def line_info_from_v2(info: v2.gpio_v2_line_info) -> LineInfo:
    return LineInfo(
        offset=info.offset,
        name=bytes_to_str(info.name),
        consumer=bytes_to_str(info.consumer),
        used=bool(info.flags & v2.LineFlag.USED),
        config=line_config_from_v2(info),
    )


def _event_type(event_id: int) -> LineEventType:
    if event_id == v1.EventId.RISING_EDGE:
        return LineEventType.RISING_EDGE
    if event_id == v1.EventId.FALLING_EDGE:
        return LineEventType.FALLING_EDGE
    raise ValueError(f"unknown event id {event_id}")


def line_event_from_v1(data: v1.gpioevent_data, offset: int) -> LineEvent:
    """v1 event records do not carry the offset, the caller knows it from the fd."""
    return LineEvent(offset=offset, timestamp_ns=data.timestamp, type=_event_type(data.id))


def line_event_from_v2(event: v2.gpio_v2_line_event) -> LineEvent:
    return LineEvent(
        offset=event.offset,
        timestamp_ns=event.timestamp_ns,
        type=_event_type(event.id),
        seqno=event.seqno,
        line_seqno=event.line_seqno,
    )


def info_changed_from_v1(changed: v1.gpioline_info_changed) -> LineInfoChangeEvent:
    return LineInfoChangeEvent(
        info=line_info_from_v1(changed.info),
        timestamp_ns=changed.timestamp,
        type=_CHANGE_TYPES[LineChangedType(changed.event_type)],
    )


def info_changed_from_v2(changed: v2.gpio_v2_line_info_changed) -> LineInfoChangeEvent:
    return LineInfoChangeEvent(
        info=line_info_from_v2(changed.info),
        timestamp_ns=changed.timestamp_ns,
        type=_CHANGE_TYPES[LineChangedType(changed.event_type)],
    )
