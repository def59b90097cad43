from pos_edge.results import Result
from pos_edge.sync_manager import flush_outbox, outbox_size, dead_outbox_size, get_sync_status as worker_status


def flush_pending_sync(ctx):
    return flush_outbox(ctx)


def get_sync_status(ctx):
    return Result.ok({
        'pending': outbox_size(),
        'dead': dead_outbox_size(),
        'online': ctx.probe.is_online(),
        'outboxEnabled': ctx.outbox_enabled,
        'worker': worker_status(),
    })
