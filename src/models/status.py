from core.errors import StateError, ValidationError


class StatusMachine:
    """Allowed status transitions for one entity type.

    ``transitions`` maps a status to the set of statuses reachable from it.
    A status with no entry (or an empty set) is terminal.
    """

    def __init__(self, entity: str, transitions: dict[str, set[str]]):
        self.entity = entity
        self.transitions = transitions
        self.statuses = set(transitions) | {s for targets in transitions.values() for s in targets}

    def can(self, current: str, target: str) -> bool:
        return target in self.transitions.get(current, set())

    def is_terminal(self, status: str) -> bool:
        return not self.transitions.get(status)

    def ensure(self, current: str, target: str) -> None:
        if target not in self.statuses:
            raise ValidationError(f"Invalid {self.entity} status '{target}'")
        if not self.can(current, target):
            raise StateError(f"Cannot move {self.entity} from '{current}' to '{target}'")
