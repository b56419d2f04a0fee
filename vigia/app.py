import logging
from typing import List, Optional, Sequence

from rich.markup import escape
from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen
from textual.widgets import Button, Footer, Header, Label, LoadingIndicator, Markdown, Tree

from vigia.__version__ import __version__
from vigia.config import Config, load_config
from vigia.core.auditor import Auditor
from vigia.core.filter import SELF_RELATION, severity_bucket
from vigia.core.intelligence import run_intelligence
from vigia.core.model import AuditResult, Dependency, IntelligenceReport, Vulnerability

SEVERITY_COLORS = {"critical": "bold red", "high": "red", "medium": "yellow", "low": "blue"}
OSV_URL = "https://osv.dev/vulnerability/"


class ReportScreen(ModalScreen):
    """Scrollable markdown report over the dependency tree."""

    DEFAULT_CSS = """
    ReportScreen {
        align: center middle;
        background: $background 70%;
    }
    #report {
        width: 90%;
        height: 90%;
        padding: 0 2;
        border: round $warning;
        background: $panel;
    }
    #report-title {
        width: 100%;
        content-align: center middle;
        text-style: bold reverse;
        margin-bottom: 1;
    }
    #report-body { height: 1fr; }
    #report-close { width: 100%; }
    """

    BINDINGS = [Binding("escape", "close", "Close")]

    def __init__(self, title: str, body: str) -> None:
        super().__init__()
        self.report_title = title
        self.body = body

    def compose(self) -> ComposeResult:
        with Vertical(id="report"):
            yield Label(self.report_title, id="report-title")
            with VerticalScroll(id="report-body"):
                yield Markdown(self.body)
            yield Button("Close", variant="warning", id="report-close")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.action_close()

    def action_close(self) -> None:
        self.app.pop_screen()


def build_vulnerability_report(vulns: Sequence[Vulnerability]) -> str:
    if not vulns:
        return "Nothing reported for this package."

    sections = []
    for vuln in vulns:
        level = severity_bucket(vuln.cvss)
        lines = [
            f"## {vuln.id} ({level.upper()}, CVSS {vuln.cvss:.1f})",
            "",
            f"> {vuln.summary or 'No summary.'}",
            "",
            f"Fixed in: **{vuln.fix_available or 'not yet fixed'}**",
        ]
        if vuln.aliases:
            lines.append(f"Also known as: {', '.join(vuln.aliases)}")
        if vuln.details:
            lines += ["", vuln.details]

        osv_link = OSV_URL + vuln.id
        lines += ["", "References:", f"- [osv.dev]({osv_link})"]
        lines += [
            f"- [{ref.get('type', 'link').lower()}]({ref['url']})"
            for ref in vuln.references
            if ref.get("url") and ref["url"] != osv_link
        ]
        sections.append("\n".join(lines))

    return "\n\n---\n\n".join(sections)


def build_intelligence_report(report: IntelligenceReport) -> str:
    lines = ["## Quick wins", ""]
    lines += [
        f"- **{win.package}**: {win.impact}" + (f" `{win.command}`" if win.command else "")
        for win in report.quick_wins
    ] or ["Nothing cheap to fix."]

    lines += ["", "## Critical paths", ""]
    for path in report.critical_paths:
        lines += [
            f"**{path.cve_id}** `{path.path}`",
            f"- {path.risk}",
            f"- {path.resolution}",
            f"- {path.estimated_impact}",
            "",
        ]
    if not report.critical_paths:
        lines.append("No critical or high risk paths.")

    if report.conflicts:
        lines += ["", "## Version conflicts", ""]
        lines += [
            f"- **{c.package}** [{c.risk_level}] wants {' / '.join(c.required_versions)}: {c.suggested_resolution}"
            for c in report.conflicts
        ]

    return "\n".join(lines)


def dependency_label(dep: Dependency, child_count: int = 0) -> str:
    label = f"{escape(dep.name)} [dim]{escape(dep.version)}[/]"
    if dep.vulnerabilities:
        worst = max(v.cvss for v in dep.vulnerabilities)
        color = SEVERITY_COLORS[severity_bucket(worst)]
        label = f"[{color}]✖ {label} {len(dep.vulnerabilities)} vuln(s), max CVSS {worst:.1f}[/]"
    else:
        label = f"[green]✔[/] {label}"
    if child_count:
        label += f" [dim](+{child_count})[/]"
    return label


class VigiaApp(App):
    TITLE = "vigia"
    SUB_TITLE = f"dependency audit v{__version__}"

    DEFAULT_CSS = """
    #summary {
        dock: top;
        height: 1;
        padding: 0 1;
        background: $boost;
    }
    #summary Label { margin-right: 3; }
    #progress { height: 1fr; align: center middle; }
    #results { height: 1fr; padding: 0 1; }
    #dep-tree { background: $panel; }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("j", "cursor_down", "Down", show=False),
        Binding("k", "cursor_up", "Up", show=False),
        Binding("l", "expand_node", "Expand"),
        Binding("h", "collapse_node", "Collapse"),
        Binding("v", "toggle_filter", "Vulnerable only"),
        Binding("i", "show_plan", "Remediation plan"),
    ]

    def __init__(
        self,
        paths: Sequence[str] = (".",),
        include_transitive: bool = True,
        config: Optional[Config] = None,
    ) -> None:
        super().__init__()
        self.paths: List[str] = list(paths)
        self.include_transitive = include_transitive
        self.config = config or load_config()
        self.only_vulnerable = False
        self.result: Optional[AuditResult] = None
        self.report: Optional[IntelligenceReport] = None

    def compose(self) -> ComposeResult:
        yield Header()
        with Horizontal(id="summary"):
            for key in ("manifests", "total", "vulns", "severity"):
                yield Label("", id=f"sum-{key}")
        with Container(id="progress"):
            yield LoadingIndicator()
            yield Label("Starting audit...", id="status")
        with Container(id="results"):
            yield Tree("dependencies", id="dep-tree")
        yield Footer()

    def on_mount(self) -> None:
        self.query_one("#results").display = False
        self.run_audit()

    @property
    def dep_tree(self) -> Tree:
        return self.query_one("#dep-tree", Tree)

    # Key actions

    def action_cursor_down(self) -> None:
        self.dep_tree.action_cursor_down()

    def action_cursor_up(self) -> None:
        self.dep_tree.action_cursor_up()

    def action_expand_node(self) -> None:
        node = self.dep_tree.cursor_node
        if node is not None:
            node.expand()

    def action_collapse_node(self) -> None:
        node = self.dep_tree.cursor_node
        if node is None:
            return
        target = node if node.is_expanded else node.parent
        if target is not None:
            target.collapse()
            self.dep_tree.select_node(target)

    def action_toggle_filter(self) -> None:
        self.only_vulnerable = not self.only_vulnerable
        if self.only_vulnerable:
            self.notify("Hiding packages that are only vulnerable through their dependencies.")
        else:
            self.notify("Showing every package on a vulnerable path.")
        if self.result is not None:
            self.render_tree(self.result)

    def action_show_plan(self) -> None:
        if self.report is not None:
            self.push_screen(ReportScreen("Remediation plan", build_intelligence_report(self.report)))

    def on_tree_node_selected(self, event: Tree.NodeSelected) -> None:
        dep = event.node.data
        if not isinstance(dep, Dependency):
            return
        if dep.vulnerabilities:
            title = f"{dep.name} {dep.version}"
            self.push_screen(ReportScreen(title, build_vulnerability_report(dep.vulnerabilities)))
        else:
            self.notify(f"{dep.name} has no advisories of its own; expand it to see why it is listed.")

    # Audit

    def update_progress(self, step: str, percent: float) -> None:
        self.query_one("#status", Label).update(f"{step.replace('_', ' ').title()} {percent:.0f}%")

    def show_summary(self, result: AuditResult) -> None:
        self.query_one("#sum-manifests", Label).update(f"manifests [b]{len(result.dependencies)}[/]")
        self.query_one("#sum-total", Label).update(f"dependencies [b]{result.total_dependencies}[/]")
        self.query_one("#sum-vulns", Label).update(f"vulnerabilities [b red]{result.total_vulnerabilities}[/]")
        self.query_one("#sum-severity", Label).update(
            " ".join(
                f"[{SEVERITY_COLORS[level]}]{level[0].upper()}:{count}[/]"
                for level, count in (
                    ("critical", result.critical_count),
                    ("high", result.high_count),
                    ("medium", result.medium_count),
                    ("low", result.low_count),
                )
            )
        )

    @work(exclusive=True)
    async def run_audit(self) -> None:
        auditor = Auditor(self.config, on_progress=self.update_progress)
        try:
            result = await auditor.audit_paths(self.paths, self.include_transitive)
        except Exception as e:
            logging.exception("Audit failed")
            self.query_one("#status", Label).update(f"[b red]Audit failed:[/] {escape(str(e))}")
            self.query_one(LoadingIndicator).display = False
            return

        self.result = result
        self.report = run_intelligence(result.dependencies)
        self.show_summary(result)
        self.render_tree(result)
        for error in result.errors:
            self.notify(error, severity="warning", timeout=10)

    def render_tree(self, result: AuditResult) -> None:
        tree = self.dep_tree
        tree.clear()
        tree.root.set_label(escape(" ".join(self.paths)))
        tree.root.expand()

        if not result.dependencies:
            tree.root.add_leaf("[green]No known vulnerabilities.[/]")

        for file_path, deps in result.dependencies.items():
            manifest = tree.root.add(f"[b]{escape(file_path)}[/]", expand=True)
            for dep in deps:
                if self.only_vulnerable and not dep.vulnerabilities:
                    continue
                graph = dep.transitive_dependencies
                children = [n for n in graph.nodes if n.dependency_type != SELF_RELATION] if graph else []
                branch = manifest.add(dependency_label(dep, len(children)), data=dep)
                for child in children:
                    branch.add_leaf(dependency_label(child), data=child)

        self.query_one("#progress").display = False
        self.query_one("#results").display = True
        tree.focus()
