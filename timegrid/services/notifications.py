"""
Sync notifications - aggregate toasts for the status sink.

One toast per drain pass, never per operation: all synced, or synced with
some failures that will be retried. Passes with no success stay silent.
"""

from PySide6.QtCore import QObject, Signal

from timegrid.i18n import plural, tr


class SyncNotifier(QObject):
    """Listens to an OperationQueue and emits localized toasts"""

    toast = Signal(str, str, str)  # level ('success', 'warning', 'info'), title, description

    def __init__(self, queue=None, connectivity=None):
        super().__init__()
        if queue is not None:
            queue.drain_finished.connect(self.on_drain_finished)
        if connectivity is not None:
            connectivity.online_changed.connect(self.on_online_changed)

    def on_drain_finished(self, synced: int, failed: int):
        if synced <= 0:
            return
        synced_items = plural(synced, "sync.item", "sync.items")
        if failed > 0:
            self.toast.emit(
                "warning",
                tr("sync.synced_items", count=synced, items=synced_items),
                tr("sync.failed_detail", count=failed, items=plural(failed, "sync.item", "sync.items")),
            )
        else:
            self.toast.emit(
                "success",
                tr("sync.all_synced"),
                tr("sync.success_detail", count=synced, items=synced_items),
            )

    def on_online_changed(self, online: bool):
        if online:
            self.toast.emit("info", tr("sync.online"), "")
        else:
            self.toast.emit("info", tr("sync.offline"), "")
