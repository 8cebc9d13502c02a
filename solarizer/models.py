"""Data models for Solar.web API responses."""

import math
from typing import Annotated, Any, List

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


def parse_localized_float(value: Any) -> float:
    """Convert Solar.web numbers into a float.

    Handles native numbers and German-formatted strings such as "1.012,4"
    (-> 1012.4) or "12,4 kWh" (-> 12.4). Anything that cannot be parsed,
    including null, becomes 0.0. Lossy, never raises.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else 0.0
    if not isinstance(value, str):
        return 0.0

    parts = value.strip().split()
    if not parts:
        return 0.0
    # Dots are thousands separators, the comma is the decimal mark
    text = parts[0].replace(".", "").replace(",", ".", 1)
    try:
        number = float(text)
    except ValueError:
        return 0.0
    return number if math.isfinite(number) else 0.0


LocalizedFloat = Annotated[float, BeforeValidator(parse_localized_float)]


class SolarWebModel(BaseModel):
    """Immutable record decoded from a single response body."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class PowerSnapshot(SolarWebModel):
    """Current power flow from /ActualData/GetCompareDataForPvSystem."""

    is_online: bool = Field(default=False, alias="IsOnline")
    all_online: bool = Field(default=False, alias="AllOnline")
    power_grid: LocalizedFloat = Field(default=0.0, alias="P_Grid")  # W, grid to inverter
    power_load: LocalizedFloat = Field(default=0.0, alias="P_Load")  # W, house to inverter
    power_pv: LocalizedFloat = Field(default=0.0, alias="P_PV")  # W, cells to inverter
    power_battery: LocalizedFloat = Field(default=0.0, alias="P_Batt")  # W, battery to inverter
    battery_percentage: LocalizedFloat = Field(default=0.0, alias="SOC")
    battery_mode: LocalizedFloat = Field(default=0.0, alias="BatMode")


class Earnings(SolarWebModel):
    """Money earned by the PV system, per period."""

    iso_currency: str = Field(default="", alias="IsoCurrency")
    total: LocalizedFloat = Field(default=0.0, alias="Total")
    month: LocalizedFloat = Field(default=0.0, alias="Month")
    year: LocalizedFloat = Field(default=0.0, alias="Year")
    today: LocalizedFloat = Field(default=0.0, alias="Today")
    total_label: str = Field(default="", alias="TotalLabel")
    month_label: str = Field(default="", alias="MonthLabel")
    year_label: str = Field(default="", alias="YearLabel")
    today_label: str = Field(default="", alias="TodayLabel")


class Co2Savings(SolarWebModel):
    """Lifetime CO2 savings."""

    distance_unit: str = Field(default="", alias="DistanceUnit")
    distance_value: LocalizedFloat = Field(default=0.0, alias="DistanceValue")
    emission_unit: str = Field(default="", alias="EmissionUnit")
    emission_value: LocalizedFloat = Field(default=0.0, alias="EmissionValue")
    trees: LocalizedFloat = Field(default=0.0, alias="Trees")


class EarningsAndSavingsData(SolarWebModel):
    earnings: Earnings = Field(default_factory=Earnings, alias="Earnings")
    total_co2_savings: Co2Savings = Field(default_factory=Co2Savings, alias="TotalCo2Savings")


class EarningsAndSavings(SolarWebModel):
    """Productions and earnings from /PvSystems/GetPvSystemEarningsAndSavings."""

    data: EarningsAndSavingsData = Field(default_factory=EarningsAndSavingsData)


class ChartSeries(SolarWebModel):
    """One series of the widget chart; data shape depends on type/name."""

    type: str = ""
    name: str = ""
    data: List[Any] = Field(default_factory=list)


class WidgetChartData(SolarWebModel):
    series: List[ChartSeries] = Field(default_factory=list)


class GridBalance(SolarWebModel):
    """Grid balance from /Chart/GetWidgetChart.

    Only a reduced structure of the actual widget payload is kept.
    """

    has_meter: bool = Field(default=False, alias="hasMeter")
    to_grid: LocalizedFloat = Field(default=0.0, alias="toGrid")  # kWh today
    from_grid: LocalizedFloat = Field(default=0.0, alias="fromGrid")  # kWh today
    chart: WidgetChartData = Field(default_factory=WidgetChartData)


class UnreadMessageCountData(SolarWebModel):
    unread_service_messages: int = Field(default=0, alias="UnreadServiceMessages")
    unread_news: int = Field(default=0, alias="UnreadNews")
    unread_system_messages: int = Field(default=0, alias="UnreadSystemMessages")
    pending_invitations: int = Field(default=0, alias="PendingInvitations")
    sum: int = Field(default=0, alias="Sum")


class UnreadMessageCount(SolarWebModel):
    """Unread message counters from /Messages/GetUnreadMessageCountForUser."""

    data: UnreadMessageCountData = Field(default_factory=UnreadMessageCountData)
