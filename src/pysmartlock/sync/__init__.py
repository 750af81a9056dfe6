"""Tag synchronization layer.

The state machine is the single owner of the authoritative tag list and
of the add/delete slots. The command issuer is the only component allowed
to open a slot; only the machine closes one.
"""
