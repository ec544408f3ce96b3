# FlowBoard: single-user task board with a natural-language command interface
#
# Components:
#   schema.py      - Data model (Task, Column, Board, Priority, ColumnId)
#   seed.py        - Sample board used on first run and on reset
#   dates.py       - Natural-language date phrase resolver
#   resolvers.py   - Column / priority reference resolvers
#   matcher.py     - Fuzzy task-name matching with disambiguation
#   actions.py     - Action variants and chat responses
#   intents.py     - Intent classifier and action builder
#   insights.py    - Read-only board analytics replies
#   persistence.py - Key/value storage backends (memory, SQLite)
#   store.py       - Board store with undo/redo history and autosave
#   driver.py      - Conversation driver (classify, apply, transcript)
#   views.py       - Search, filter and sort over tasks
#   export.py      - CSV export
