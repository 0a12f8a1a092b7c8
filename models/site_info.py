from pydantic import BaseModel, ConfigDict
from typing import Literal, Optional

OK = "OK"
FAIL = "FAIL"


class FetchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["OK", "FAIL"]
    data: Optional[bytes] = None
    url: str
    encoding: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == OK

    @property
    def text(self) -> str:
        if not self.data:
            return ""
        try:
            return self.data.decode(self.encoding or "utf-8", errors="replace")
        except LookupError:
            return self.data.decode("utf-8", errors="replace")


class FaviconResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    source: Literal["static", "html", "default", "fallback"]
    data: Optional[bytes] = None


class Performance(BaseModel):
    model_config = ConfigDict(frozen=True)

    time_spent: str
    memory_usage: str


class SiteInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = ""
    description: str = ""
    keywords: str = ""
    canonical: str = ""
    favicon_url: str = ""
    host: str
    performance: Performance


class SiteInfoResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    data: SiteInfo
