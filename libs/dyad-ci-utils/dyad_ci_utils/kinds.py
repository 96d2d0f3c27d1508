from enum import StrEnum

# ---------------------------------------------------------------------------- #
#                             Commit Status States                             #
# ---------------------------------------------------------------------------- #


class StatusState(StrEnum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"
    FAILURE = "failure"

    def describe(self, name: str) -> str:
        match self:
            case StatusState.PENDING:
                return f"Testing {name} in progress"
            case StatusState.SUCCESS:
                return f"Testing {name} succeeded"
            case StatusState.ERROR:
                return f"Testing {name} errored"
            case StatusState.FAILURE:
                return f"Testing {name} failed"


# ---------------------------------------------------------------------------- #
#                                  Demo Steps                                  #
# ---------------------------------------------------------------------------- #


class DemoStep(StrEnum):
    INSTANTIATE = "instantiate"
    TEST = "test"
    DYAD_COMPILE = "dyad-compile"
    DYAD_DOC_GEN = "dyad-doc-gen"
    ALL = "all"

    def context(self, demo_name: str) -> str:
        """GitHub status context, e.g. `CoffeeMugDemo/test`."""
        return f"{demo_name}/{self.value}"


# ---------------------------------------------------------------------------- #
