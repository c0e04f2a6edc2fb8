from dataclasses import dataclass, field

from courier import HTTPBearerJWTSecurityType

from .statuserrors import PetError


@dataclass
class Authorization(HTTPBearerJWTSecurityType):
    """Check the bearer token"""
    authorization: str = field(metadata={"in": "header", "name": "Authorization"})

    def output(self, ctx):
        if not self.authorization.startswith("Bearer "):
            raise PetError.Unauthorized.as_error()
        return None
