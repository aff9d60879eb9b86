# Domain Layer
# ============
# Pure logic with no I/O: intent classification of chat text and
# derived views over project task rows.
