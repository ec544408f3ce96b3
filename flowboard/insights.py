"""
Read-only board analytics used by the chat interface.

Every function here is a pure function of a board snapshot and a reference
day; none of them emit actions.
"""
import random
from collections import Counter
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from .dates import as_day, is_overdue
from .schema import Board, ColumnId, Priority, Task, COLUMN_ORDER


PRIORITY_EMOJI = {Priority.HIGH: "🔴", Priority.MEDIUM: "🟡", Priority.LOW: "🟢"}

# Workload buckets: (upper bound on active tasks, label, remark)
WORKLOAD_LEVELS = [
    (3, "light", "Room for more! 💪"),
    (7, "moderate", "Good balance! ⚖️"),
    (12, "heavy", "Be careful! 🏋️"),
]
WIP_WARNING_THRESHOLD = 4
TIPS_SHOWN = 3

TIPS = [
    "🎯 **Focus on ONE task at a time.** Multitasking reduces productivity by up to 40%.",
    "⏰ **Use the 2-minute rule:** If it takes less than 2 minutes, do it now.",
    "📋 **Break large tasks down** into smaller sub-tasks.",
    "🔄 **Review your board daily.** 5 minutes each morning for planning.",
    "🚫 **Limit WIP to 3-4 tasks.** Too many in-progress = context switching.",
    "📅 **Set realistic due dates.** Unrealistic deadlines cause stress.",
    "✅ **Celebrate completions!** Moving to Done feels great.",
]


def plural(count: int, word: str = "task") -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


@dataclass
class BoardSnapshot:
    """Per-column and per-state task lists computed once per message."""

    all: List[Task]
    todo: List[Task]
    in_progress: List[Task]
    done: List[Task]
    overdue: List[Task]
    high_pending: List[Task]
    today: date

    @classmethod
    def of(cls, board: Board, today=None) -> "BoardSnapshot":
        day = as_day(today)
        tasks = board.all_tasks()
        return cls(
            all=tasks,
            todo=[t for t in tasks if t.column_id is ColumnId.TODO],
            in_progress=[t for t in tasks if t.column_id is ColumnId.IN_PROGRESS],
            done=[t for t in tasks if t.column_id is ColumnId.DONE],
            overdue=[t for t in tasks if not t.column_id.is_terminal and is_overdue(t.due_date, day)],
            high_pending=[t for t in tasks if t.priority is Priority.HIGH and not t.column_id.is_terminal],
            today=day,
        )

    @property
    def completion_rate(self) -> int:
        if not self.all:
            return 0
        # half-up, not banker's rounding
        return int(len(self.done) * 100 / len(self.all) + 0.5)


def summary_text(snap: BoardSnapshot) -> str:
    lines = [
        "📊 **Board Summary**",
        "",
        f"• **To Do:** {plural(len(snap.todo))}",
        f"• **In Progress:** {plural(len(snap.in_progress))}",
        f"• **Done:** {plural(len(snap.done))}",
        f"• **Total:** {plural(len(snap.all))}",
        "",
    ]
    if snap.overdue:
        lines += [f"⚠️ **{len(snap.overdue)} overdue** need attention!", ""]
    if snap.high_pending:
        lines += [f"🔴 {len(snap.high_pending)} high-priority pending.", ""]
    lines.append(f"Completion rate: **{snap.completion_rate}%**")
    return "\n".join(lines)


def overdue_text(snap: BoardSnapshot) -> str:
    if not snap.overdue:
        return "✅ Great news! You have **no overdue tasks**. Keep it up! 🎉"
    task_list = "\n".join(f"• **{t.title}** (Due: {t.due_date.isoformat()})" for t in snap.overdue)
    return (
        f"⚠️ You have **{plural(len(snap.overdue), 'overdue task')}**:\n\n{task_list}\n\n"
        "Want me to help? I can:\n"
        "• **\"Complete [task name]\"** to mark one done\n"
        "• **\"Set due date of [task] to tomorrow\"** to reschedule"
    )


def prioritize_text(snap: BoardSnapshot) -> str:
    if not snap.high_pending and not snap.overdue:
        return (
            "🎯 You're in great shape! No urgent tasks.\n\n"
            "Consider:\n"
            "1. Working on medium-priority tasks\n"
            "2. Planning for upcoming due dates\n"
            "3. Breaking down larger tasks"
        )

    lines = ["🎯 **Prioritization Suggestions:**", ""]
    step = 1
    if snap.overdue:
        lines.append(f"**{step}. Tackle overdue tasks first:**")
        lines += [f"   • {t.title} ({t.priority.value} priority)" for t in snap.overdue[:3]]
        lines.append("")
        step += 1
    high_on_time = [t for t in snap.high_pending if not is_overdue(t.due_date, snap.today)]
    if high_on_time:
        lines.append(f"**{step}. High-priority tasks:**")
        for t in high_on_time[:3]:
            due = f" (Due: {t.due_date.isoformat()})" if t.due_date else ""
            lines.append(f"   • {t.title}{due}")
        lines.append("")
    lines.append("💡 Try **\"Complete [task]\"** or **\"Start [task]\"** to take action!")
    return "\n".join(lines)


def workload_text(snap: BoardSnapshot) -> str:
    active = len(snap.todo) + len(snap.in_progress)
    for limit, label, remark in WORKLOAD_LEVELS:
        if active <= limit:
            assessment = f"Your workload is **{label}** ({active} active). {remark}"
            break
    else:
        assessment = f"Your workload is **very heavy** ({active} active). Consider delegating. 🚨"

    text = (
        f"📈 **Workload Analysis**\n\n{assessment}\n\n"
        f"• {len(snap.todo)} waiting to start\n• {len(snap.in_progress)} in progress"
    )
    if len(snap.in_progress) > WIP_WARNING_THRESHOLD:
        text += "\n\n💡 Reduce WIP items: focus on finishing before starting new tasks."
    return text


def tag_distribution_text(snap: BoardSnapshot) -> str:
    counts = Counter(tag for t in snap.all for tag in t.tags)
    if not counts:
        return "You haven't used any tags yet. 🏷️\n\nTry: **\"Add tag design to [task name]\"**"
    # most_common() keeps first-seen order among equal counts
    tag_list = "\n".join(f"• **{tag}**: {plural(n)}" for tag, n in counts.most_common())
    return f"🏷️ **Tag Distribution:**\n\n{tag_list}"


def task_list_text(snap: BoardSnapshot) -> str:
    if not snap.all:
        return "Your board is empty! Start by saying **\"Create task: [title]\"**"
    lines = [f"📋 **Your Tasks ({len(snap.all)}):**", ""]
    for column_id in COLUMN_ORDER:
        tasks = [t for t in snap.all if t.column_id is column_id]
        if not tasks:
            continue
        lines.append(f"**{column_id.title}** ({len(tasks)}):")
        for t in tasks:
            due = f" 📅 {t.due_date.isoformat()}" if t.due_date else ""
            late = " ⚠️" if not column_id.is_terminal and is_overdue(t.due_date, snap.today) else ""
            lines.append(f"• {PRIORITY_EMOJI[t.priority]} {t.title}{due}{late}")
        lines.append("")
    return "\n".join(lines).strip()


def tips_text(rng: Optional[random.Random] = None) -> str:
    rng = rng or random.Random()
    picked = rng.sample(TIPS, TIPS_SHOWN)
    return "💡 **Productivity Tips:**\n\n" + "\n\n".join(picked)


def stats_text(snap: BoardSnapshot) -> str:
    total = len(snap.all)
    by_priority = Counter(t.priority for t in snap.all)
    with_due = sum(1 for t in snap.all if t.due_date)
    avg_tags = f"{sum(len(t.tags) for t in snap.all) / total:.1f}" if total else "0"
    return "\n".join([
        "📊 **Board Statistics:**",
        "",
        f"• Total tasks: **{total}**",
        f"• Completion rate: **{snap.completion_rate}%**",
        f"• High priority: **{by_priority[Priority.HIGH]}**",
        f"• Medium priority: **{by_priority[Priority.MEDIUM]}**",
        f"• Low priority: **{by_priority[Priority.LOW]}**",
        f"• With due dates: **{with_due}**",
        f"• Overdue: **{len(snap.overdue)}**",
        f"• Avg tags/task: **{avg_tags}**",
    ])
