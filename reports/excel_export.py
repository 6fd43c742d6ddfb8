"""Excel export of the log book and weekly summaries."""
from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable

import pandas as pd

from planner_app.planner.models import LogEntry, WeeklySummary
from planner_app.planner.subjects import category_for

LOGGER = logging.getLogger(__name__)

LOG_COLUMNS = [
    "Id",
    "Date",
    "Task",
    "Subject",
    "Category",
    "StartTime",
    "EndTime",
    "DurationMinutes",
]
SUMMARY_COLUMNS = ["WeekOf", "TotalMinutes", "AverageMinutesPerDay", "SubjectAverages"]


class ExcelExporter:
    def __init__(self, export_path: Path):
        self.export_path = Path(export_path)
        self.export_path.parent.mkdir(parents=True, exist_ok=True)

    def export(self, logs: Iterable[LogEntry], summaries: Iterable[WeeklySummary]) -> Path:
        """Export logs and summaries, merging with an existing workbook.

        Logs are deduplicated by id and summaries by week, newest data winning.
        """
        logs_df = pd.DataFrame(
            [
                (
                    entry.id,
                    entry.date,
                    entry.task_title,
                    entry.subject_tag,
                    category_for(entry.subject_tag),
                    entry.start_time,
                    entry.end_time,
                    entry.duration_minutes,
                )
                for entry in logs
            ],
            columns=LOG_COLUMNS,
        )
        summaries_df = pd.DataFrame(
            [
                (
                    summary.week_of,
                    summary.total_minutes,
                    summary.average_minutes_per_day,
                    ", ".join(f"{tag}={minutes}" for tag, minutes in sorted(summary.subject_averages.items())),
                )
                for summary in summaries
            ],
            columns=SUMMARY_COLUMNS,
        )
        logs_df["Date"] = pd.to_datetime(logs_df["Date"]).dt.date
        summaries_df["WeekOf"] = pd.to_datetime(summaries_df["WeekOf"]).dt.date

        if self.export_path.exists():
            try:
                existing_logs = pd.read_excel(self.export_path, sheet_name="Logs")
                existing_summaries = pd.read_excel(self.export_path, sheet_name="WeeklySummaries")
            except Exception:  # noqa: BLE001
                LOGGER.warning("Existing Excel file unreadable, recreating: %s", self.export_path)
            else:
                existing_logs["Date"] = pd.to_datetime(existing_logs["Date"]).dt.date
                existing_summaries["WeekOf"] = pd.to_datetime(existing_summaries["WeekOf"]).dt.date
                logs_df = pd.concat([existing_logs, logs_df], ignore_index=True)
                logs_df.drop_duplicates(subset=["Id"], keep="last", inplace=True)
                summaries_df = pd.concat([existing_summaries, summaries_df], ignore_index=True)
                summaries_df.drop_duplicates(subset=["WeekOf"], keep="last", inplace=True)

        logs_df.sort_values(["Date", "StartTime"], ascending=[False, True], inplace=True)
        summaries_df.sort_values("WeekOf", ascending=False, inplace=True)

        with pd.ExcelWriter(self.export_path, engine="openpyxl", mode="w") as writer:
            logs_df.to_excel(writer, sheet_name="Logs", index=False)
            summaries_df.to_excel(writer, sheet_name="WeeklySummaries", index=False)
            meta_df = pd.DataFrame(
                [[datetime.now(), len(logs_df), len(summaries_df)]],
                columns=["ExportedAt", "LogCount", "WeekCount"],
            )
            meta_df.to_excel(writer, sheet_name="Meta", index=False)
        LOGGER.info("Exported log book to %s", self.export_path)
        return self.export_path
