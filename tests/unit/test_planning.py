"""Tests for planning decomposition and plan helpers."""

import json

import pytest

from fakes import ScriptedAdapter, client_for, quota_failure
from nevra.constants import TaskCategory, TaskPriority, TaskStatus
from nevra.services.gateway import AttemptOutcome, ProviderRegistry, RequestDispatcher
from nevra.services.planning import (
    FALLBACK_TASKS,
    Plan,
    PlanningDecomposer,
    Task,
    create_fallback_plan,
    critical_path,
    is_plan_complete,
    parse_plan,
    plan_from_payload,
    plan_progress,
    ready_tasks,
    repair_dependencies,
    tasks_by_category,
    topological_order,
    update_task_status,
)

pytestmark = [pytest.mark.unit]


def _is_acyclic(tasks):
    try:
        topological_order(Plan(id='p', prompt='x', tasks=tuple(tasks), total_estimated_minutes=0))
    except ValueError:
        return False
    return True


def _decomposer(*script, timeout_seconds=5.0):
    adapter = ScriptedAdapter(*script)
    registry = ProviderRegistry.from_config({'OPENROUTER_API_KEY': 'test-key'})
    dispatcher = RequestDispatcher(registry, client_for(adapter))
    return PlanningDecomposer(dispatcher, timeout_seconds=timeout_seconds), adapter


PLAN_JSON = {
    'tasks': [
        {'id': 'a', 'title': 'Scaffold', 'category': 'setup', 'priority': 'high', 'estimatedTime': 3},
        {'id': 'b', 'title': 'Header', 'dependencies': ['a'], 'estimatedTime': 4},
        {'id': 'c', 'title': 'Wire up', 'dependencies': ['b'], 'category': 'logic', 'estimatedTime': 5},
    ],
}


class TestFallbackPlan:

    def test_shape(self):
        plan = create_fallback_plan('Build a todo app')

        assert plan.prompt == 'Build a todo app'
        assert plan.degraded
        assert plan.total_estimated_minutes == 30
        assert len(plan.tasks) == 6
        assert [task.category for task in plan.tasks] == [
            TaskCategory.SETUP,
            TaskCategory.SETUP,
            TaskCategory.COMPONENT,
            TaskCategory.STYLING,
            TaskCategory.LOGIC,
            TaskCategory.TESTING,
        ]
        deps = {task.id: task.dependencies for task in plan.tasks}
        assert deps == {'1': (), '2': ('1',), '3': ('2',), '4': ('3',), '5': ('3',), '6': ('4', '5')}
        assert all(task.estimated_minutes is None for task in plan.tasks)

    def test_wire_shape(self):
        data = create_fallback_plan('p').to_dict()

        assert set(data) == {'id', 'prompt', 'tasks', 'estimatedTotalTime', 'createdAt', 'updatedAt'}
        assert data['estimatedTotalTime'] == 30
        assert data['createdAt'].endswith('Z')
        assert data['tasks'][0]['status'] == 'completed'
        assert data['tasks'][5]['dependencies'] == ['4', '5']
        assert not any('estimatedTime' in task for task in data['tasks'])


class TestParsing:

    def test_parse_fenced_plan(self):
        content = "Plan below\n```json\n" + json.dumps(PLAN_JSON) + "\n```"

        plan = parse_plan(content, 'prompt')

        assert [task.id for task in plan.tasks] == ['a', 'b', 'c']
        assert plan.total_estimated_minutes == 12
        assert plan.tasks[0].priority == TaskPriority.HIGH
        assert plan.tasks[1].category == TaskCategory.COMPONENT
        assert not plan.degraded

    def test_declared_total_wins(self):
        plan = parse_plan(json.dumps(dict(PLAN_JSON, estimatedTotalTime=40)), 'p')

        assert plan.total_estimated_minutes == 40

    @pytest.mark.parametrize('content', [None, '', 'no json here', '{"tasks": []}', '{"tasks": "nope"}'])
    def test_unusable_content(self, content):
        assert parse_plan(content, 'p') is None

    def test_unknown_and_self_dependencies_dropped(self):
        tasks = [
            Task('1', 'one', dependencies=('1', 'ghost')),
            Task('2', 'two', dependencies=('1', '1')),
        ]

        repaired = repair_dependencies(tasks)

        assert repaired[0].dependencies == ()
        assert repaired[1].dependencies == ('1',)

    def test_cycles_repaired_by_dropping_closing_edge(self):
        tasks = [
            Task('1', 'one', dependencies=('3',)),
            Task('2', 'two', dependencies=('1',)),
            Task('3', 'three', dependencies=('2',)),
        ]

        repaired = repair_dependencies(tasks)

        assert [task.dependencies for task in repaired] == [('3',), ('1',), ()]
        assert _is_acyclic(repaired)

    def test_parsed_plan_is_acyclic(self):
        data = {'tasks': [
            {'id': 'x', 'title': 'x', 'dependencies': ['y']},
            {'id': 'y', 'title': 'y', 'dependencies': ['z']},
            {'id': 'z', 'title': 'z', 'dependencies': ['x', 'y']},
        ]}

        plan = parse_plan(json.dumps(data), 'p')

        assert _is_acyclic(plan.tasks)

    def test_duplicate_ids_keep_first(self):
        data = {'tasks': [{'id': '1', 'title': 'first'}, {'id': '1', 'title': 'second'}]}

        plan = parse_plan(json.dumps(data), 'p')

        assert [task.title for task in plan.tasks] == ['first']

    def test_plan_from_payload_round_trip(self):
        original = create_fallback_plan('p')

        rebuilt = plan_from_payload(original.to_dict(), 'ignored')

        assert rebuilt.id == original.id
        assert rebuilt.prompt == 'p'
        assert rebuilt.tasks == original.tasks
        assert rebuilt.total_estimated_minutes == 30

    def test_plan_from_payload_without_tasks(self):
        assert plan_from_payload({'id': '1', 'tasks': []}, 'p') is None


class TestDecomposer:

    @pytest.mark.asyncio
    async def test_success(self):
        decomposer, adapter = _decomposer(AttemptOutcome.success(json.dumps(PLAN_JSON)))

        plan = await decomposer.decompose('Build a blog', 'deepseek')

        assert not plan.degraded
        assert len(plan.tasks) == 3
        call = adapter.calls[0]
        assert call.max_tokens == 2000
        assert call.temperature == 0.7
        assert 'Build a blog' in call.system_prompt

    @pytest.mark.asyncio
    async def test_timeout_returns_fallback(self):
        decomposer, _ = _decomposer(1.0, timeout_seconds=0.05)

        plan = await decomposer.decompose('Build a blog', 'deepseek')

        assert plan.degraded
        assert len(plan.tasks) == 6
        assert plan.total_estimated_minutes == 30

    @pytest.mark.asyncio
    async def test_provider_failure_returns_fallback(self):
        decomposer, _ = _decomposer(*(quota_failure() for _ in range(4)))

        plan = await decomposer.decompose('Build a blog', 'deepseek')

        assert plan.degraded
        assert plan.prompt == 'Build a blog'

    @pytest.mark.asyncio
    async def test_unparseable_output_returns_fallback(self):
        decomposer, _ = _decomposer(AttemptOutcome.success('Sure! First you should...'))

        plan = await decomposer.decompose('Build a blog', 'deepseek')

        assert plan.degraded

    @pytest.mark.asyncio
    async def test_unknown_provider_returns_fallback(self):
        decomposer, adapter = _decomposer()

        plan = await decomposer.decompose('Build a blog', 'nope')

        assert plan.degraded
        assert adapter.calls == []

    @pytest.mark.asyncio
    async def test_empty_prompt_returns_fallback(self):
        decomposer, adapter = _decomposer()

        plan = await decomposer.decompose('  ', 'deepseek')

        assert plan.degraded
        assert adapter.calls == []


class TestPlanHelpers:

    def test_ready_tasks_follow_completion(self):
        plan = create_fallback_plan('p')

        assert [task.id for task in ready_tasks(plan)] == ['2']

        plan = update_task_status(plan, '2', TaskStatus.COMPLETED)
        plan = update_task_status(plan, '3', TaskStatus.COMPLETED)

        assert [task.id for task in ready_tasks(plan)] == ['4', '5']

    def test_update_bumps_timestamp_and_keeps_original(self):
        plan = create_fallback_plan('p')

        updated = update_task_status(plan, '2', TaskStatus.IN_PROGRESS)

        assert updated.task('2').status == TaskStatus.IN_PROGRESS
        assert plan.task('2').status == TaskStatus.PENDING
        assert updated.updated_at >= plan.updated_at

    def test_progress_and_completion(self):
        plan = create_fallback_plan('p')

        assert plan_progress(plan) == 17
        assert not is_plan_complete(plan)

        for task_id in ('2', '3', '4', '5'):
            plan = update_task_status(plan, task_id, TaskStatus.COMPLETED)
        plan = update_task_status(plan, '6', TaskStatus.SKIPPED)

        assert plan_progress(plan) == 83
        assert is_plan_complete(plan)

    def test_empty_plan_progress(self):
        assert plan_progress(Plan(id='p', prompt='p', tasks=(), total_estimated_minutes=0)) == 0

    def test_category_and_critical_path(self):
        plan = create_fallback_plan('p')

        assert [task.id for task in tasks_by_category(plan, TaskCategory.SETUP)] == ['1', '2']
        assert [task.id for task in critical_path(plan)] == ['2', '3']

    def test_topological_order(self):
        plan = create_fallback_plan('p')

        assert [task.id for task in topological_order(plan)] == ['1', '2', '3', '4', '5', '6']

    def test_topological_order_rejects_cycle(self):
        tasks = (Task('1', 'a', dependencies=('2',)), Task('2', 'b', dependencies=('1',)))
        plan = Plan(id='p', prompt='p', tasks=tasks, total_estimated_minutes=0)

        with pytest.raises(ValueError):
            topological_order(plan)

    def test_fallback_tasks_are_shared_constants(self):
        assert create_fallback_plan('a').tasks is FALLBACK_TASKS
