""" Example: load a form and walk two respondents through its branches. """
from pathlib import Path

from formflow.logging_utils import configure_logging
from formflow.settings import load_settings
from formflow.workflow.compiler import load_form, compile_form
from formflow.workflow.context import answer_context
from formflow.workflow.describe import summarize_connection
from formflow.workflow.validation import detect_cycles


def main():
    settings = load_settings()
    configure_logging(settings.log_level)
    form = load_form(Path("examples/forms/feedback.yaml").read_text(), auto_connect=settings.auto_connect)

    for conn in form.connections:
        print(f"{conn.source_id}: {summarize_connection(conn, form.block(conn.source_id))}")

    report = detect_cycles(form.blocks, form.connections)
    print(f"Cycles: {sorted(report.cyclic_ids()) or 'none'}")

    graph = compile_form(form, sequential_fallback=settings.sequential_fallback,
                         max_steps=settings.max_walk_steps)
    promoter = {
        "q_score": answer_context(10),
        "q_praise": answer_context("Fast support"),
        "q_email": answer_context("pat@example.com"),
    }
    detractor = {
        "q_score": answer_context(4),
        "q_complaint": answer_context("Too slow"),
        "q_email": answer_context("sam@mail.org"),
    }
    for name, answers in (("promoter", promoter), ("detractor", detractor)):
        result = graph.walk(answers)
        print(f"{name}: {' -> '.join(result.path)} ({result.status})")


if __name__ == '__main__':
    main()
