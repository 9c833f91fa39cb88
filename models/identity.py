from pydantic import BaseModel

from enums.caller_role import CallerRole


class CallerIdentity(BaseModel):
    """
    Resolved caller context handed in by the outer layer.

    Credentials are checked upstream; the core only looks at the role and id.
    For sellers the caller_id is the seller id as a string.
    """
    caller_id: str
    role: CallerRole

    @property
    def is_operator(self) -> bool:
        return self.role == CallerRole.OPERATOR

    @property
    def is_seller(self) -> bool:
        return self.role == CallerRole.SELLER
