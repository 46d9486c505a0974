"""Report output — terminal rendering, exit codes and file sinks.

Modules
-------
renderer
    ``ReportRenderer`` turns a finalized ``Report`` into a Rich panel or a
    deterministic plain-text summary; ``exit_code_for`` maps the verdict
    to the process exit code.
sink
    ``ReportFileSink`` persists a report as canonical JSON or plain text.
"""
