"""Planning Decomposer
===================

Breaks a prompt into a dependency-ordered task plan with one gateway call
under a short wall-clock budget. Whatever goes wrong (timeout, provider
failure, unparseable output, empty task list) the caller still gets a plan:
the fixed six-task fallback.

The module also carries the small plan helpers the UI drives progress with
(status updates, ready tasks, progress, critical path).
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from nevra.constants import (
    DEFAULT_PLANNING_TIMEOUT_SECONDS,
    PLANNING_MAX_TOKENS,
    PLANNING_TEMPERATURE,
    TaskCategory,
    TaskPriority,
    TaskStatus,
    coerce_enum,
)
from nevra.services.gateway.models import GenerationRequest
from nevra.services.gateway.prompts import build_planning_prompt
from nevra.services.normalizer import extract_structured_object

logger = logging.getLogger(__name__)

FALLBACK_TOTAL_MINUTES = 30


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_plan_id() -> str:
    return str(int(time.time() * 1000))


def _isoformat(value: datetime) -> str:
    return value.isoformat().replace('+00:00', 'Z')


@dataclass(frozen=True)
class Task:
    id: str
    title: str
    description: str = ''
    status: TaskStatus = TaskStatus.PENDING
    dependencies: Tuple[str, ...] = ()
    priority: TaskPriority = TaskPriority.MEDIUM
    category: TaskCategory = TaskCategory.COMPONENT
    estimated_minutes: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'status': self.status.value,
            'dependencies': list(self.dependencies),
            'priority': self.priority.value,
            'category': self.category.value,
        }
        if self.estimated_minutes is not None:
            data['estimatedTime'] = self.estimated_minutes
        return data


@dataclass(frozen=True)
class Plan:
    """A decomposition of one prompt. Dependencies always form a DAG."""
    id: str
    prompt: str
    tasks: Tuple[Task, ...]
    total_estimated_minutes: int
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    degraded: bool = False

    def task(self, task_id: str) -> Optional[Task]:
        return next((task for task in self.tasks if task.id == task_id), None)

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape of the planning endpoint."""
        return {
            'id': self.id,
            'prompt': self.prompt,
            'tasks': [task.to_dict() for task in self.tasks],
            'estimatedTotalTime': self.total_estimated_minutes,
            'createdAt': _isoformat(self.created_at),
            'updatedAt': _isoformat(self.updated_at),
        }


# ===========================
# FALLBACK
# ===========================

FALLBACK_TASKS = (
    Task('1', 'Analyze Requirements', 'Understand the user requirements and break down the project',
         TaskStatus.COMPLETED, (), TaskPriority.HIGH, TaskCategory.SETUP),
    Task('2', 'Design Architecture', 'Plan the component structure and data flow',
         TaskStatus.PENDING, ('1',), TaskPriority.HIGH, TaskCategory.SETUP),
    Task('3', 'Generate Components', 'Create React components based on the design',
         TaskStatus.PENDING, ('2',), TaskPriority.HIGH, TaskCategory.COMPONENT),
    Task('4', 'Apply Styling', 'Add TailwindCSS classes and custom styles',
         TaskStatus.PENDING, ('3',), TaskPriority.MEDIUM, TaskCategory.STYLING),
    Task('5', 'Implement Logic', 'Add interactivity and state management',
         TaskStatus.PENDING, ('3',), TaskPriority.MEDIUM, TaskCategory.LOGIC),
    Task('6', 'Test & Refine', 'Test the application and fix any issues',
         TaskStatus.PENDING, ('4', '5'), TaskPriority.LOW, TaskCategory.TESTING),
)


def create_fallback_plan(prompt: str) -> Plan:
    """The fixed six-task plan returned whenever planning cannot produce one."""
    return Plan(
        id=_new_plan_id(),
        prompt=prompt,
        tasks=FALLBACK_TASKS,
        total_estimated_minutes=FALLBACK_TOTAL_MINUTES,
        degraded=True,
    )


# ===========================
# PARSING
# ===========================

def _minutes(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        minutes = int(value)
    except (TypeError, ValueError):
        return None
    return minutes if minutes >= 0 else None


def repair_dependencies(tasks: Iterable[Task]) -> Tuple[Task, ...]:
    """Drop dependencies on unknown ids or self, and any edge that would close a cycle.

    Edges are accepted in first-seen order (task order, then dependency order).
    """
    tasks = list(tasks)
    known = {task.id for task in tasks}
    accepted: Dict[str, List[str]] = {task.id: [] for task in tasks}

    def reaches(start: str, target: str) -> bool:
        stack, seen = [start], set()
        while stack:
            node = stack.pop()
            if node == target:
                return True
            if node in seen:
                continue
            seen.add(node)
            stack.extend(accepted.get(node, ()))
        return False

    repaired = []
    for task in tasks:
        for dep in task.dependencies:
            if dep not in known or dep == task.id or dep in accepted[task.id]:
                continue
            if reaches(dep, task.id):
                logger.debug(f"Dropping dependency {task.id} -> {dep}: closes a cycle")
                continue
            accepted[task.id].append(dep)
        repaired.append(replace(task, dependencies=tuple(accepted[task.id])))
    return tuple(repaired)


def _parse_task(raw: Mapping[str, Any], position: int) -> Task:
    task_id = str(raw.get('id') or position).strip() or str(position)
    deps = raw.get('dependencies') or []
    if not isinstance(deps, list):
        deps = [deps]
    return Task(
        id=task_id,
        title=str(raw.get('title') or f"Task {task_id}"),
        description=str(raw.get('description') or ''),
        status=coerce_enum(TaskStatus, raw.get('status'), TaskStatus.PENDING),
        dependencies=tuple(str(dep).strip() for dep in deps if dep is not None),
        priority=coerce_enum(TaskPriority, raw.get('priority'), TaskPriority.MEDIUM),
        category=coerce_enum(TaskCategory, raw.get('category'), TaskCategory.COMPONENT),
        estimated_minutes=_minutes(raw.get('estimatedTime')),
    )


def _parse_tasks(raw_tasks: Any) -> List[Task]:
    tasks: List[Task] = []
    seen: Set[str] = set()
    for position, raw in enumerate(raw_tasks if isinstance(raw_tasks, list) else [], start=1):
        if not isinstance(raw, Mapping):
            continue
        task = _parse_task(raw, position)
        if task.id in seen:
            continue
        seen.add(task.id)
        tasks.append(task)
    return tasks


def _total_minutes(data: Mapping[str, Any], tasks: Iterable[Task]) -> int:
    total = _minutes(data.get('estimatedTotalTime'))
    if not total:
        total = sum(task.estimated_minutes or 0 for task in tasks)
    return total


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            pass
    return _utcnow()


def parse_plan(content: Optional[str], prompt: str) -> Optional[Plan]:
    """Parse model output into a Plan, or None if it holds no usable tasks."""
    data = extract_structured_object(content)
    if data is None:
        return None

    tasks = _parse_tasks(data.get('tasks'))
    if not tasks:
        return None

    return Plan(
        id=_new_plan_id(),
        prompt=prompt,
        tasks=repair_dependencies(tasks),
        total_estimated_minutes=_total_minutes(data, tasks),
    )


def plan_from_payload(data: Mapping[str, Any], prompt: str) -> Optional[Plan]:
    """Rebuild a Plan from the planning endpoint's wire shape, or None without tasks."""
    tasks = _parse_tasks(data.get('tasks'))
    if not tasks:
        return None

    return Plan(
        id=str(data.get('id') or _new_plan_id()),
        prompt=str(data.get('prompt') or prompt),
        tasks=repair_dependencies(tasks),
        total_estimated_minutes=_total_minutes(data, tasks),
        created_at=_parse_timestamp(data.get('createdAt')),
        updated_at=_parse_timestamp(data.get('updatedAt')),
    )


class PlanningDecomposer:
    """Produces a Plan for a prompt through the gateway dispatcher.

    Args:
        dispatcher: Dispatcher the single planning request goes through
        timeout_seconds: Wall-clock budget for the whole planning call
    """

    def __init__(self, dispatcher, timeout_seconds: float = DEFAULT_PLANNING_TIMEOUT_SECONDS):
        self.dispatcher = dispatcher
        self.timeout_seconds = timeout_seconds

    async def decompose(self, prompt: str, provider: str) -> Plan:
        try:
            request = GenerationRequest(
                prompt=prompt,
                provider=provider,
                system_prompt=build_planning_prompt(prompt),
            )
        except ValueError as e:
            logger.warning(f"Planning request rejected ({e}), using fallback plan")
            return create_fallback_plan(prompt or '')

        try:
            result = await asyncio.wait_for(
                self.dispatcher.dispatch(
                    request,
                    max_tokens_override=PLANNING_MAX_TOKENS,
                    temperature_override=PLANNING_TEMPERATURE,
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Planning with {provider} exceeded {self.timeout_seconds:g}s, using fallback plan")
            return create_fallback_plan(prompt)

        if not result.success:
            kind = result.failure_kind.value if result.failure_kind else 'unknown'
            logger.warning(f"Planning with {provider} failed ({kind}), using fallback plan")
            return create_fallback_plan(prompt)

        plan = parse_plan(result.content, prompt)
        if plan is None:
            logger.warning("Planning response held no usable tasks, using fallback plan")
            return create_fallback_plan(prompt)

        logger.info(f"Planned {len(plan.tasks)} tasks ({plan.total_estimated_minutes} min) with {provider}")
        return plan


# ===========================
# PLAN HELPERS
# ===========================

def update_task_status(plan: Plan, task_id: str, status: TaskStatus) -> Plan:
    """New plan with one task's status changed and ``updated_at`` bumped."""
    tasks = tuple(replace(task, status=status) if task.id == task_id else task for task in plan.tasks)
    return replace(plan, tasks=tasks, updated_at=_utcnow())


def ready_tasks(plan: Plan) -> List[Task]:
    """Pending tasks whose dependencies are all completed."""
    completed = {task.id for task in plan.tasks if task.status == TaskStatus.COMPLETED}
    return [
        task for task in plan.tasks
        if task.status == TaskStatus.PENDING and all(dep in completed for dep in task.dependencies)
    ]


def plan_progress(plan: Plan) -> int:
    """Completed share of tasks, as a rounded percentage."""
    if not plan.tasks:
        return 0
    completed = sum(1 for task in plan.tasks if task.status == TaskStatus.COMPLETED)
    return round(completed / len(plan.tasks) * 100)


def is_plan_complete(plan: Plan) -> bool:
    return all(task.status in (TaskStatus.COMPLETED, TaskStatus.SKIPPED) for task in plan.tasks)


def tasks_by_category(plan: Plan, category: TaskCategory) -> List[Task]:
    return [task for task in plan.tasks if task.category == category]


def critical_path(plan: Plan) -> List[Task]:
    """High priority tasks that depend on other tasks."""
    return [task for task in plan.tasks if task.priority == TaskPriority.HIGH and task.dependencies]


def topological_order(plan: Plan) -> List[Task]:
    """Tasks ordered so every task follows its dependencies; ties keep plan order.

    Raises:
        ValueError: the dependency relation has a cycle
    """
    remaining = {task.id: set(task.dependencies) for task in plan.tasks}
    ordered: List[Task] = []
    while remaining:
        ready = [task for task in plan.tasks if task.id in remaining and not remaining[task.id]]
        if not ready:
            raise ValueError(f"Plan {plan.id} has cyclic dependencies")
        for task in ready:
            ordered.append(task)
            del remaining[task.id]
        for deps in remaining.values():
            deps.difference_update(task.id for task in ready)
    return ordered
