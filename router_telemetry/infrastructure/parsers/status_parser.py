from typing import Optional

from router_telemetry.domain.entities.device import RouterStatus
from router_telemetry.infrastructure.parsers.base import OutputParser
from router_telemetry.utils.coercion import to_float, to_int, to_text

_STATUS_FIELDS = 13


def _kb_to_mb(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    return round(value / 1024, 1)


def _celsius(raw: Optional[float]) -> Optional[float]:
    # thermal_zone reports millidegrees on most SoCs
    if raw is None:
        return None
    if raw > 1000:
        raw = raw / 1000
    return round(raw, 1)


class SystemStatusParser(OutputParser[Optional[RouterStatus]]):
    """
    Parse the single ``|``-separated line of ``system_status_script``.

    Memory and storage arrive in kB and are stored in MB.
    """

    facet = "status"

    def parse(self, output: str) -> Optional[RouterStatus]:
        line = next((l.strip() for l in output.splitlines() if "|" in l), None)
        if line is None:
            return None

        fields = line.split("|")
        if len(fields) < _STATUS_FIELDS:
            fields += [""] * (_STATUS_FIELDS - len(fields))
        else:
            # cpu model is free text and may itself contain the separator
            fields = fields[:_STATUS_FIELDS - 1] + ["|".join(fields[_STATUS_FIELDS - 1:])]

        (model, firmware, ip_address, uptime, cpu, mem_used, mem_total,
         temp, disk_used, disk_total, load, cores, cpu_model) = fields

        firmware = to_text(firmware)
        if firmware and firmware.strip(".") == "":
            firmware = None

        return RouterStatus(
            model=to_text(model, "Unknown"),
            firmware=firmware or "Unknown",
            ip_address=to_text(ip_address, ""),
            uptime=to_int(uptime, 0),
            cpu_usage=round(to_float(cpu, 0.0), 1),
            memory_usage=_kb_to_mb(to_float(mem_used, 0.0)),
            memory_total=_kb_to_mb(to_float(mem_total, 0.0)),
            temperature=_celsius(to_float(temp)),
            storage_usage=_kb_to_mb(to_float(disk_used)),
            storage_total=_kb_to_mb(to_float(disk_total)),
            load_average=to_text(load),
            cpu_cores=to_int(cores),
            cpu_model=to_text(cpu_model),
        )
