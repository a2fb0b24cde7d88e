from __future__ import annotations

from dataclasses import dataclass

from scenereel.models.scene import Horizon
from scenereel.models.style import ValidationStrides


@dataclass(frozen=True, slots=True)
class HorizonCheck:
    horizon: Horizon
    reference_scene_index: int


def _fires(index: int, stride: int) -> bool:
    return (index + 1) % stride == 0 and index >= stride


def select_horizons(index: int, strides: ValidationStrides) -> list[HorizonCheck]:
    """决定某个场景每次尝试要跑哪些评审（IMMEDIATE 总是第一个）

    IMMEDIATE 的参考场景记为自身；其余视野只有在 ``(i+1) % stride == 0`` 且
    ``i >= stride`` 时触发。
    """
    checks = [HorizonCheck("IMMEDIATE", index)]
    if _fires(index, strides.short):
        checks.append(HorizonCheck("SHORT_TERM", index - strides.short))
    if _fires(index, strides.medium):
        checks.append(HorizonCheck("MEDIUM_TERM", index - strides.medium))
    if _fires(index, strides.long):
        checks.append(HorizonCheck("LONG_TERM", 0))
    return checks
