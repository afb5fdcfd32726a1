"""Prayer timings schemas."""

from pydantic import AwareDatetime, BaseModel


class StoreTimingsRequest(BaseModel):
    """
    A day's prayer instants supplied by the client.

    Every instant must carry a UTC offset and be later than the previous one.
    """

    fajr: AwareDatetime
    sunrise: AwareDatetime
    dhuhr: AwareDatetime
    asr: AwareDatetime
    maghrib: AwareDatetime
    isha: AwareDatetime
    midnight: AwareDatetime
    timezone: str = "UTC"
    calc_method: int | None = None
    calc_school: int | None = None


class TimingsResponse(BaseModel):
    date: str
    fajr: str
    sunrise: str
    dhuhr: str
    asr: str
    maghrib: str
    isha: str
    midnight: str
    timezone: str
    calc_method: int | None
    calc_school: int | None
    retrieved_at: str | None
    created: bool = False
