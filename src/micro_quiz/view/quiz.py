from __future__ import annotations

from typing import Optional

from textual.app import App, ComposeResult
from textual.containers import Container, Vertical
from textual.widget import Widget
from textual.widgets import Button, Input, Static

from ..engine import QuizTaker
from ..errors import PersistenceError, ValidationError
from ..models import Answer, Attempt, Question
from ..session import format_duration

_CHOICE_KEYS = "ABCDEF"


class TakeQuizApp(App):
    """Full-screen quiz runner; ``run()`` returns the saved attempt or None."""

    CSS_PATH = None
    CSS = """
#choices Button.selected { background: $accent; color: black; }
#footer { height: auto; }
#status { color: $warning; }
"""
    BINDINGS = [
        ("n", "next", "Next"),
        ("p", "prev", "Prev"),
        ("a", "select_a", "Select A"),
        ("b", "select_b", "Select B"),
        ("c", "select_c", "Select C"),
        ("d", "select_d", "Select D"),
        ("e", "select_e", "Select E"),
        ("f", "select_f", "Select F"),
        ("s", "submit", "Submit"),
        ("q", "quit_quiz", "Quit"),
    ]

    def __init__(self, taker: QuizTaker, *, tick_interval: float = 1.0):
        super().__init__()
        self._taker = taker
        self._tick_interval = tick_interval
        self._countdown = None
        self._status_text = ""

    @property
    def taker(self) -> QuizTaker:
        return self._taker

    def compose(self) -> ComposeResult:
        with Container(id="stage"):
            yield self._question_view()
        with Container(id="footer"):
            yield Button("Prev", id="prev")
            yield Button("Next", id="next")
            yield Button("Submit", id="submit")
            yield Static(self._answered_text(), id="answered")
            yield Static(self._timer_text(), id="timer")
            yield Static("", id="status")

    def on_mount(self) -> None:
        self._countdown = self.set_interval(self._tick_interval, self.handle_tick)

    # Pure helpers for navigation and answering (testable without running App)
    def current_question(self) -> Question:
        return self._taker.current

    def next_question(self) -> int:
        self._run(self._taker.next)
        return self._taker.index

    def prev_question(self) -> int:
        self._taker.previous()
        self._update_stage()
        return self._taker.index

    def select_answer(self, key: str) -> bool:
        k = str(key).strip().upper()[:1]
        if not k or k not in _CHOICE_KEYS:
            return False
        if not self.current_question().uses_choices:
            return False
        try:
            recorded = self._taker.answer_current(_CHOICE_KEYS.index(k))
        except ValidationError:
            self._set_status(f"'{k}' is not a valid choice for this question.")
            return False
        self._update_stage()
        return recorded

    def enter_text(self, text: str) -> bool:
        if self.current_question().uses_choices:
            return False
        try:
            recorded = self._taker.answer_current(text)
        except ValidationError as exc:
            self._set_status(str(exc))
            return False
        self._update_stage()
        return recorded

    def submit_quiz(self) -> Optional[Attempt]:
        self._run(self._taker.submit)
        return self._taker.attempt

    def handle_tick(self) -> None:
        if self._taker.is_completed:
            self._finish()
            return
        self._run(self._taker.tick)

    def _run(self, action) -> None:
        try:
            action()
        except PersistenceError as exc:
            self._set_status(f"Could not save your attempt: {exc}")
            return
        if self._taker.is_completed:
            self._finish()
        else:
            self._update_stage()

    def _finish(self) -> None:
        if self._countdown is not None:
            self._countdown.stop()
            self._countdown = None
        try:
            self.exit(self._taker.attempt)
        except Exception:
            pass

    def _question_view(self) -> "QuestionView":
        question = self._taker.current
        return QuestionView(
            question,
            index=self._taker.index + 1,
            total=self._taker.total_questions,
            selected=self._taker.answer_for(question.id),
        )

    def _update_stage(self) -> None:
        try:
            stage = self.query_one("#stage", Container)
        except Exception:
            return
        stage.remove_children()
        stage.mount(self._question_view())
        for selector, text in (
            ("#answered", self._answered_text()),
            ("#timer", self._timer_text()),
            ("#status", self._status_text),
        ):
            try:
                self.query_one(selector, Static).update(text)
            except Exception:
                pass

    def _set_status(self, message: str) -> None:
        self._status_text = message
        self._update_stage()

    def action_next(self) -> None:
        self.next_question()

    def action_prev(self) -> None:
        self.prev_question()

    def action_select_a(self) -> None:
        self.select_answer("A")

    def action_select_b(self) -> None:
        self.select_answer("B")

    def action_select_c(self) -> None:
        self.select_answer("C")

    def action_select_d(self) -> None:
        self.select_answer("D")

    def action_select_e(self) -> None:
        self.select_answer("E")

    def action_select_f(self) -> None:
        self.select_answer("F")

    def action_submit(self) -> None:
        self.submit_quiz()

    def action_quit_quiz(self) -> None:
        if self._countdown is not None:
            self._countdown.stop()
            self._countdown = None
        self.exit(None)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        bid = getattr(event.button, "id", "") or ""
        if bid.startswith("choice-") and len(bid) >= 8:
            self.select_answer(bid[-1])
        elif bid == "submit":
            self.action_submit()
        elif bid == "next":
            self.action_next()
        elif bid == "prev":
            self.action_prev()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self.enter_text(event.value)

    def _answered_text(self) -> str:
        return (
            f"Answered: {self._taker.answered_count()}/{self._taker.total_questions}"
        )

    def _timer_text(self) -> str:
        remaining = self._taker.remaining_seconds
        if remaining is None:
            return f"Elapsed: {format_duration(self._taker.elapsed_seconds)}"
        return f"Time left: {format_duration(remaining)}"

    def answered_count(self) -> int:
        return self._taker.answered_count()


class QuestionView(Widget):
    """Render one question with its choices or a text box, plus progress."""

    def __init__(
        self,
        question: Question,
        index: int,
        total: int,
        *,
        selected: Optional[Answer] = None,
    ) -> None:
        super().__init__()
        self.question = question
        self.index = index
        self.total = total
        self.selected = selected

    def selected_key(self) -> Optional[str]:
        index = getattr(self.selected, "index", None)
        if index is None or not 0 <= index < len(_CHOICE_KEYS):
            return None
        return _CHOICE_KEYS[index]

    def compose(self) -> ComposeResult:
        yield Static(
            f"{self.question.prompt}  ({self.question.points} pts)", id="stem"
        )
        key_selected = self.selected_key()
        if self.question.uses_choices:
            with Vertical(id="choices"):
                for key, text in zip(_CHOICE_KEYS, self.question.choices):
                    btn = Button(f"{key}) {text}", id=f"choice-{key}")
                    if key == key_selected:
                        try:
                            btn.add_class("selected")
                        except Exception:
                            pass
                    yield btn
        else:
            yield Input(
                value=self.question.describe(self.selected) or "",
                placeholder="Type your answer and press Enter",
                id="text-answer",
            )
        yield Static(f"{self.index}/{self.total}", id="progress")
        typed = self.question.describe(self.selected)
        yield Static(f"Selected: {typed}" if typed else "", id="feedback")
