# backend/app/core/context.py
from dataclasses import dataclass, field, replace
from typing import Optional

from app.core.i18n import Translator
from app.core.regions import RegionConfig, resolve_region
from app.schemas.user import AuthUser


@dataclass(frozen=True)
class RequestContext:
    """Identity, region and translator for one request; built once, never mutated"""

    user: Optional[AuthUser]
    access_token: Optional[str]
    region: RegionConfig
    translator: Translator = field(compare=False)

    @classmethod
    def build(
        cls,
        user: Optional[AuthUser],
        access_token: Optional[str],
        region_code: Optional[str] = None,
    ) -> "RequestContext":
        region = resolve_region(region_code)
        return cls(
            user=user,
            access_token=access_token,
            region=region,
            translator=Translator(region.language),
        )

    @property
    def language(self) -> str:
        return self.region.language

    @property
    def user_id(self) -> Optional[str]:
        return self.user.id if self.user else None

    def with_region(self, region_code: Optional[str]) -> "RequestContext":
        region = resolve_region(region_code)
        return replace(self, region=region, translator=Translator(region.language))
