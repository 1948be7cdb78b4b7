# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterize/script/generator.py

from __future__ import annotations

import logging
import shlex
from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateNotFound

from ..outcomes import Error, FormCluster, InstructionOutcome, ShutDown, Wait
from .report import ReportChannel

log = logging.getLogger("clusterize")

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


class ScriptRenderError(RuntimeError):
    pass


def _heredoc_safe(text: Any) -> str:
    # a line equal to the terminator would end the heredoc early
    return "\n".join(
        line for line in str(text).splitlines() if line.strip() != "###ERROR"
    )


def _environment(templates_dir: Path) -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(templates_dir)),
        undefined=StrictUndefined,
        autoescape=False,
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["shq"] = lambda v: shlex.quote(str(v))
    env.filters["heredoc_safe"] = _heredoc_safe
    return env


class InstructionScriptGenerator:
    """
    Renders an InstructionOutcome into the bash payload the node's startup
    agent runs. Pure: no I/O besides reading the bundled templates.
    """

    def __init__(self, channel: Optional[ReportChannel] = None, templates_dir: Path = TEMPLATES_DIR):
        self.channel = channel
        self.env = _environment(templates_dir)

    def _render(self, name: str, context: Dict[str, Any]) -> str:
        base = {
            "report_url": self.channel.report_url if self.channel else None,
            "finalization_url": self.channel.finalization_url if self.channel else None,
        }
        try:
            tmpl = self.env.get_template(name)
        except TemplateNotFound as e:
            raise ScriptRenderError(f"Missing template: {name}") from e
        return tmpl.render(**base, **context)

    def render(self, outcome: InstructionOutcome) -> str:
        if isinstance(outcome, Wait):
            return self._render("wait.sh.j2", {"message": outcome.message})
        if isinstance(outcome, FormCluster):
            log.info("Generating clusterization script")
            return self._render("clusterize.sh.j2", {"plan": outcome.plan})
        if isinstance(outcome, ShutDown):
            msg = f"{outcome.instance_name} is surplus to the pool of {outcome.expected}, shutting down"
            return self._render("shutdown.sh.j2", {"message": msg})
        if isinstance(outcome, Error):
            return self._render("error.sh.j2", {"message": outcome.message})
        raise TypeError(f"unhandled instruction outcome {outcome!r}")
