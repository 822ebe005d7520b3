from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Callable, Optional

from .errors import FieldError
from .forms import INTAKE_FIELDS, FieldSpec, as_list, as_text, fields_for_step
from .models import TOTAL_STEPS, WizardState

EnterHook = Callable[[int, Optional[int]], None]
LeaveHook = Callable[[int, int], None]

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_FALSE_CHECKBOX_VALUES = {"", "false", "off", "0"}


@dataclass(frozen=True)
class NavigationResult:
    moved: bool
    step: int
    errors: list[FieldError] = field(default_factory=list)
    reason: str = "ok"


class StepHooks:
    def __init__(self) -> None:
        self._enter_hooks: list[EnterHook] = []
        self._leave_hooks: list[LeaveHook] = []

    def add_enter(self, hook: EnterHook) -> None:
        self._enter_hooks.append(hook)

    def add_leave(self, hook: LeaveHook) -> None:
        self._leave_hooks.append(hook)

    def run_enter(self, step: int, previous: int | None) -> None:
        for hook in self._enter_hooks:
            hook(step, previous)

    def run_leave(self, step: int, next_step: int) -> None:
        for hook in self._leave_hooks:
            hook(step, next_step)


def _is_empty(spec: FieldSpec, value: object) -> bool:
    if spec.multiple:
        return not as_list(value)  # type: ignore[arg-type]
    text = as_text(value)  # type: ignore[arg-type]
    if spec.kind == "checkbox":
        return text.lower() in _FALSE_CHECKBOX_VALUES
    return not text


def validate_field(spec: FieldSpec, value: object) -> FieldError | None:
    if _is_empty(spec, value):
        if spec.required:
            return FieldError(spec.name, "required", f"{spec.label} is required.")
        return None
    text = as_text(value)  # type: ignore[arg-type]
    if spec.kind == "email" and not _EMAIL_RE.match(text):
        return FieldError(spec.name, "invalid_email", f"{spec.label} must be a valid email address.")
    if spec.kind == "range":
        try:
            number = float(text)
        except ValueError:
            return FieldError(spec.name, "out_of_range", f"{spec.label} must be a number.")
        if (spec.min_value is not None and number < spec.min_value) or (
            spec.max_value is not None and number > spec.max_value
        ):
            return FieldError(
                spec.name,
                "out_of_range",
                f"{spec.label} must be between {spec.min_value} and {spec.max_value}.",
            )
    return None


class StepNavigator:
    def __init__(
        self,
        state: WizardState,
        *,
        fields: tuple[FieldSpec, ...] = INTAKE_FIELDS,
        total_steps: int = TOTAL_STEPS,
        hooks: StepHooks | None = None,
    ) -> None:
        self.state = state
        self.fields = fields
        self.total_steps = total_steps
        self.hooks = hooks or StepHooks()

    @property
    def current_step(self) -> int:
        return self.state.current_step

    @property
    def is_last_step(self) -> bool:
        return self.state.current_step == self.total_steps

    def validate(self, step: int) -> list[FieldError]:
        errors: list[FieldError] = []
        for spec in fields_for_step(step, self.fields):
            error = validate_field(spec, self.state.fields.get(spec.name))
            if error is not None:
                errors.append(error)
        return errors

    def validate_all(self) -> dict[int, list[FieldError]]:
        failures: dict[int, list[FieldError]] = {}
        for step in range(1, self.total_steps + 1):
            errors = self.validate(step)
            if errors:
                failures[step] = errors
        return failures

    def advance(self) -> NavigationResult:
        step = self.state.current_step
        errors = self.validate(step)
        if errors:
            return NavigationResult(moved=False, step=step, errors=errors, reason="validation_failed")
        self.state.completed_steps.add(step)
        if step >= self.total_steps:
            return NavigationResult(moved=False, step=step, reason="last_step")
        self._enter(step + 1)
        return NavigationResult(moved=True, step=self.state.current_step)

    def retreat(self) -> NavigationResult:
        step = self.state.current_step
        if step <= 1:
            return NavigationResult(moved=False, step=step, reason="first_step")
        self._enter(step - 1)
        return NavigationResult(moved=True, step=self.state.current_step)

    def can_jump_to(self, target: int) -> bool:
        return target == self.state.current_step or target in self.state.completed_steps

    def jump_to(self, target: int) -> NavigationResult:
        if not 1 <= target <= self.total_steps:
            return NavigationResult(moved=False, step=self.state.current_step, reason="out_of_range")
        if not self.can_jump_to(target):
            return NavigationResult(moved=False, step=self.state.current_step, reason="not_completed")
        if target == self.state.current_step:
            return NavigationResult(moved=False, step=target, reason="already_here")
        self._enter(target)
        return NavigationResult(moved=True, step=target)

    def restore_to(self, step: int) -> None:
        step = min(self.total_steps, max(1, step))
        self.state.completed_steps.update(range(1, step))
        self._enter(step, force=True)

    def reset(self) -> None:
        self.state.completed_steps.clear()
        self._enter(1, force=True)

    def progress_percent(self) -> int:
        if self.total_steps <= 1:
            return 100
        ratio = (self.state.current_step - 1) / (self.total_steps - 1) * 100
        return int(math.floor(ratio + 0.5))

    def _enter(self, step: int, *, force: bool = False) -> None:
        previous = self.state.current_step
        if previous == step and not force:
            return
        if previous != step:
            self.hooks.run_leave(previous, step)
        self.state.current_step = step
        self.hooks.run_enter(step, previous if previous != step else None)
