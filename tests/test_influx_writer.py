"""Tests for the InfluxDB writer."""

import logging

from solarizer.influx_writer import InfluxWriter
from solarizer.models import EarningsAndSavings, GridBalance, PowerSnapshot

from .conftest import BALANCE_PAYLOAD, EARNINGS_PAYLOAD, POWER_PAYLOAD, FakeInfluxClient


def _writer(fail=False):
    client = FakeInfluxClient(fail=fail)
    writer = InfluxWriter("http://influx:8086", "token", "home", "solar", client=client)
    return writer, client.write_api_instance


def test_write_power_point():
    writer, write_api = _writer()

    writer.write_power(PowerSnapshot.model_validate(POWER_PAYLOAD))

    (point,) = write_api.records
    line = point.to_line_protocol()
    assert line.startswith("power,all_online=false,is_online=true ")
    assert "power_pv=2046.5" in line
    assert "power_grid=-1234.5" in line
    assert "battery_percentage=87.5" in line
    assert "power_battery=0" in line


def test_write_earnings_writes_two_measurements():
    writer, write_api = _writer()

    writer.write_earnings(EarningsAndSavings.model_validate(EARNINGS_PAYLOAD))

    earnings, savings = (p.to_line_protocol() for p in write_api.records)
    assert earnings.startswith("earnings,currency=EUR,month_name=Oktober,year_name=2026 ")
    assert "total=1012.4" in earnings
    assert "day=2.31" in earnings
    assert savings.startswith("co2savings,distance_unit=km,emission_unit=t ")
    assert "distance=25310" in savings
    assert "emission=3.8" in savings


def test_write_balance_point():
    writer, write_api = _writer()

    writer.write_balance(GridBalance.model_validate(BALANCE_PAYLOAD))

    (point,) = write_api.records
    line = point.to_line_protocol()
    assert line.startswith("balance,has_meter=true ")
    assert "kwh_to_grid_today=12.4" in line
    assert "kwh_from_grid_today=1003.1" in line


def test_write_failure_is_logged_not_raised(caplog):
    writer, _ = _writer(fail=True)

    with caplog.at_level(logging.ERROR):
        writer.write_power(PowerSnapshot())
        writer.write_earnings(EarningsAndSavings())

    assert "Error writing power data" in caplog.text
    assert "Error writing earnings data" in caplog.text
    assert "Error writing CO2 savings data" in caplog.text


def test_close_closes_client():
    client = FakeInfluxClient()
    writer = InfluxWriter("http://influx:8086", "token", "home", "solar", client=client)

    writer.close()

    assert client.closed
    assert client.write_api_instance.closed
