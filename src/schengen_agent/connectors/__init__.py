"""
User-facing connectors.

- console_connector.py: interactive REPL over the slash-command registry
- console_notifier.py: terminal notification sink (+ fan-out to several sinks)
- matrix_client.py / matrix_notifier.py: optional push channel over a Matrix room
"""
