import json
from pathlib import Path
import threading
from typing import IO, Any

from recordflow.interfaces import DataSource, RecordFilter
from recordflow.schemas import FieldFailure, ReadResult


class JsonlReader:
    def __init__(self, input_path: Path) -> None:
        self.input_path = input_path
        self._infile: IO[bytes] | None = None
        self._line_number = 0

    def open(self) -> None:
        if not self.input_path.exists():
            raise FileNotFoundError(f"input file not found: {self.input_path}")
        self._infile = self.input_path.open("rb")

    def try_read(self) -> ReadResult:
        if self._infile is None:
            raise RuntimeError("reader is not open")

        for raw_line in self._infile:
            self._line_number += 1
            try:
                line = raw_line.decode("utf-8").strip()
            except UnicodeDecodeError as exc:
                return ReadResult.failed(
                    [FieldFailure("$line", f"line {self._line_number}: invalid UTF-8: {exc.reason}", "invalid_utf8")]
                )
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as exc:
                return ReadResult.failed(
                    [FieldFailure("$line", f"line {self._line_number}: invalid JSON: {exc.msg}", "invalid_json")]
                )
            if not isinstance(record, dict):
                return ReadResult.failed(
                    [FieldFailure("$line", f"line {self._line_number}: record must be a JSON object", "not_an_object")]
                )
            return ReadResult.of(record)
        return ReadResult.end()

    def close(self) -> None:
        if self._infile is not None:
            self._infile.close()
            self._infile = None


class JsonlSource:
    def __init__(self, input_path: Path) -> None:
        self.input_path = input_path

    def create_reader(self) -> JsonlReader:
        return JsonlReader(self.input_path)


class JsonlFileWriter:
    def __init__(self, output_path: Path) -> None:
        self.output_path = output_path
        self.temp_path = output_path.with_name(f"{output_path.name}.tmp")
        self._outfile: IO[str] | None = None
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"JsonlFileWriter({str(self.output_path)!r})"

    def open(self) -> None:
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        self._outfile = self.temp_path.open("w", encoding="utf-8")

    def write(self, record: Any) -> None:
        line = json.dumps(record, sort_keys=True)
        with self._lock:
            if self._outfile is None:
                raise RuntimeError("writer is not open")
            self._outfile.write(line)
            self._outfile.write("\n")

    def commit(self) -> None:
        self._close_file()
        self.temp_path.replace(self.output_path)

    def rollback(self) -> None:
        self._close_file()
        self.temp_path.unlink(missing_ok=True)

    def close(self) -> None:
        self._close_file()
        self.temp_path.unlink(missing_ok=True)

    def _close_file(self) -> None:
        if self._outfile is not None:
            self._outfile.close()
            self._outfile = None


class JsonlFileDestination:
    def __init__(self, output_path: Path, record_filter: RecordFilter | None = None) -> None:
        self.output_path = output_path
        self.record_filter = record_filter

    def create_writer(self, source: DataSource) -> JsonlFileWriter:
        return JsonlFileWriter(self.output_path)
