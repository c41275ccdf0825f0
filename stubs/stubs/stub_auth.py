"""
Fixed-token stand-in for the client registry token provider.
"""


class StaticTokenProvider:
    """Hands out the same bearer token every time, counting the calls."""

    def __init__(self, token: str = "test-token") -> None:  # noqa: S107
        self.token = token
        self.calls = 0

    def get_token(self) -> str:
        self.calls += 1
        return self.token
