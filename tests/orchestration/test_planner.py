"""Tests for PlanResolver: target selection, ordering and graph validation."""

import pytest

from docship.orchestration import (
    CycleDetectedError,
    DependencyError,
    PlanResolutionError,
    PlanResolver,
    Stage,
    StageNotFoundError,
    validate_stages,
)


def noop(ctx):
    return None


def stage(name, *deps):
    return Stage(name=name, action=noop, depends_on=tuple(deps))


@pytest.fixture
def doc_graph():
    return [
        stage("collect"),
        stage("generate-fragments", "collect"),
        stage("render-reference-docs", "generate-fragments"),
        stage("render-narrative-html", "generate-fragments"),
        stage("render-narrative-pdf", "generate-fragments"),
        stage("stage-docs", "render-reference-docs", "render-narrative-html", "render-narrative-pdf"),
        stage("publish-docs", "stage-docs"),
    ]


def names(plan):
    return [s.name for s in plan]


class TestResolve:
    def test_all_stages_in_dependency_order(self, doc_graph):
        assert names(PlanResolver().resolve(doc_graph)) == [
            "collect",
            "generate-fragments",
            "render-reference-docs",
            "render-narrative-html",
            "render-narrative-pdf",
            "stage-docs",
            "publish-docs",
        ]

    def test_target_pulls_in_transitive_dependencies_only(self, doc_graph):
        plan = PlanResolver().resolve(doc_graph, ["render-narrative-html"])
        assert names(plan) == ["collect", "generate-fragments", "render-narrative-html"]

    def test_declaration_order_breaks_ties(self):
        stages = [stage("b"), stage("a"), stage("c", "a", "b")]
        assert names(PlanResolver().resolve(stages)) == ["b", "a", "c"]

    def test_dependency_declared_later_still_runs_first(self):
        stages = [stage("late", "early"), stage("early")]
        assert names(PlanResolver().resolve(stages)) == ["early", "late"]

    def test_unknown_target(self, doc_graph):
        with pytest.raises(StageNotFoundError) as exc_info:
            PlanResolver().resolve(doc_graph, ["render-docs"])
        assert exc_info.value.stage_name == "render-docs"


class TestValidation:
    def test_cycle_detected(self):
        stages = [stage("a", "c"), stage("b", "a"), stage("c", "b")]
        with pytest.raises(CycleDetectedError) as exc_info:
            PlanResolver().resolve(stages)
        cycle = exc_info.value.cycle
        assert cycle[0] == cycle[-1]
        assert set(cycle) == {"a", "b", "c"}

    def test_self_dependency_is_a_cycle(self):
        with pytest.raises(CycleDetectedError):
            PlanResolver().resolve([stage("a", "a")])

    def test_missing_dependency(self):
        with pytest.raises(DependencyError) as exc_info:
            PlanResolver().resolve([stage("stage-docs", "render-reference-docs")])
        assert exc_info.value.missing_deps == ["render-reference-docs"]

    def test_duplicate_names(self):
        with pytest.raises(PlanResolutionError, match="Duplicate"):
            PlanResolver().resolve([stage("a"), stage("a")])

    def test_validate_stages_collects_messages(self):
        assert validate_stages([stage("a"), stage("b", "a")]) == []
        errors = validate_stages([stage("a"), stage("a", "ghost")])
        assert len(errors) == 2
        assert any("ghost" in e for e in errors)
