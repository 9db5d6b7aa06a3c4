"""Shape checks for payloads coming from the pacing device.

Permissive on purpose: unknown keys pass, only the fields the gateway reads
are checked. Failures come back as a list of readable strings.
"""
from dataclasses import dataclass, field
from typing import Any, List


@dataclass
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.valid


def _result(errors: List[str]) -> ValidationResult:
    return ValidationResult(not errors, errors)


def _is_blank(value) -> bool:
    return not isinstance(value, str) or value.strip() == ''


def validate_plan(body: Any) -> ValidationResult:
    if not isinstance(body, dict):
        return ValidationResult(False, ['body must be an object'])
    errors = []

    teams = body.get('teams')
    if teams is not None and not isinstance(teams, list):
        errors.append('teams must be an array')
    if isinstance(teams, list):
        for i, team in enumerate(teams):
            if not isinstance(team, dict):
                errors.append(f"teams[{i}] must be object")
            elif _is_blank(team.get('name')):
                errors.append(f"teams[{i}].name must be non-empty string")

    rounds = body.get('rounds')
    if rounds is not None and not isinstance(rounds, list):
        errors.append('rounds must be an array')
    if isinstance(rounds, list):
        for i, rnd in enumerate(rounds):
            if not isinstance(rnd, dict):
                errors.append(f"rounds[{i}] must be object")
                continue
            for key in ('type', 'category', 'theme'):
                if rnd.get(key) is not None and not isinstance(rnd[key], str):
                    errors.append(f"rounds[{i}].{key} must be string")
            if rnd.get('durationsInSeconds') is not None and not isinstance(rnd['durationsInSeconds'], list):
                errors.append(f"rounds[{i}].durationsInSeconds must be array")

    return _result(errors)


def validate_event(body: Any) -> ValidationResult:
    if not isinstance(body, dict):
        return ValidationResult(False, ['body must be an object'])
    errors = []
    if _is_blank(body.get('type')):
        errors.append('type must be non-empty string')
    if body.get('payload') is not None and not isinstance(body['payload'], dict):
        errors.append('payload must be object when provided')
    return _result(errors)
