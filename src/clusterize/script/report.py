# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote


@dataclass(frozen=True)
class ReportChannel:
    """
    Where the generated scripts send status: the function app's HTTP
    functions, authenticated with the function key in the query string.
    """
    base_url: str          # e.g. https://<app>.azurewebsites.net/api/
    function_key: str

    def function_url(self, name: str) -> str:
        base = self.base_url if self.base_url.endswith("/") else self.base_url + "/"
        return f"{base}{name}?code={quote(self.function_key, safe='')}"

    @property
    def report_url(self) -> str:
        return self.function_url("report")

    @property
    def finalization_url(self) -> str:
        return self.function_url("clusterize_finalization")
