"""
Sync subsystem.

Components:
- state.py: connectivity / sync status state machine with observers
- bus.py: ordered in-process pub/sub with a cross-context broadcast mirror
- broadcast.py: shared broadcast channel implementations + remote-event watcher
- merge.py: creation-timestamp last-writer-wins merge of task lists
- reconciler.py: one guarded fetch/merge/persist pass
- coordinator.py: the service object wiring all of the above together
"""
