"""InfluxDB writer for storing Solar.web snapshots."""

import logging
from datetime import datetime, timezone
from typing import Optional

from influxdb_client import InfluxDBClient, Point, WritePrecision
from influxdb_client.client.write_api import SYNCHRONOUS

from .models import EarningsAndSavings, GridBalance, PowerSnapshot

logger = logging.getLogger(__name__)


def _bool_tag(value: bool) -> str:
    return "true" if value else "false"


class InfluxWriter:
    """Writes snapshots to InfluxDB, timestamped at write time."""

    def __init__(
        self,
        url: str,
        token: str,
        org: str,
        bucket: str,
        client: Optional[InfluxDBClient] = None,
    ):
        self.client = client or InfluxDBClient(url=url, token=token, org=org)
        self.write_api = self.client.write_api(write_options=SYNCHRONOUS)
        self.bucket = bucket
        self.org = org

    def close(self):
        """Close the InfluxDB client."""
        self.write_api.close()
        self.client.close()

    def _now(self) -> datetime:
        """Get current UTC timestamp."""
        return datetime.now(timezone.utc)

    def _write(self, point: Point):
        logger.debug(f"point {point.to_line_protocol()}")
        self.write_api.write(bucket=self.bucket, org=self.org, record=point)

    def write_power(self, power: PowerSnapshot):
        """Write the current power flow."""
        try:
            point = (
                Point("power")
                .tag("is_online", _bool_tag(power.is_online))
                .tag("all_online", _bool_tag(power.all_online))
                .field("power_pv", power.power_pv)
                .field("power_grid", power.power_grid)
                .field("power_load", power.power_load)
                .field("power_battery", power.power_battery)
                .field("battery_percentage", power.battery_percentage)
                .field("battery_mode", power.battery_mode)
                .time(self._now(), WritePrecision.MS)
            )
            self._write(point)
        except Exception as e:
            logger.error(f"Error writing power data: {e}")

    def write_earnings(self, data: EarningsAndSavings):
        """Write earnings and CO2 savings as two measurements."""
        earnings = data.data.earnings
        savings = data.data.total_co2_savings
        now = self._now()
        try:
            self._write(
                Point("earnings")
                .tag("currency", earnings.iso_currency)
                .tag("year_name", earnings.year_label)
                .tag("month_name", earnings.month_label)
                .field("total", earnings.total)
                .field("year", earnings.year)
                .field("month", earnings.month)
                .field("day", earnings.today)
                .time(now, WritePrecision.MS)
            )
        except Exception as e:
            logger.error(f"Error writing earnings data: {e}")

        try:
            self._write(
                Point("co2savings")
                .tag("distance_unit", savings.distance_unit)
                .tag("emission_unit", savings.emission_unit)
                .field("distance", savings.distance_value)
                .field("emission", savings.emission_value)
                .field("trees", savings.trees)
                .time(now, WritePrecision.MS)
            )
        except Exception as e:
            logger.error(f"Error writing CO2 savings data: {e}")

    def write_balance(self, balance: GridBalance):
        """Write today's grid import/export."""
        try:
            point = (
                Point("balance")
                .tag("has_meter", _bool_tag(balance.has_meter))
                .field("kwh_to_grid_today", balance.to_grid)
                .field("kwh_from_grid_today", balance.from_grid)
                .time(self._now(), WritePrecision.MS)
            )
            self._write(point)
        except Exception as e:
            logger.error(f"Error writing balance data: {e}")
