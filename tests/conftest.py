import pytest

MONGOD_HEADER = "mongod 28451 10835064.656792: cpu-clock:"

MONGOD_STACK = [
    "    ffffffff8149767f __schedule ([kernel.kallsyms])",
    "    ffffffff810901eb sys_sched_yield ([kernel.kallsyms])",
    "    ffffffff814a41a9 system_call_fastpath ([kernel.kallsyms])",
    "        7f5880a7db97 __sched_yield (/lib64/libc-2.17.so)",
    "             134789c __wt_log_write (/data/3.0/rc7d/bin/mongod)",
    "             139345e __wt_txn_commit (/data/3.0/rc7d/bin/mongod)",
    "             1389929 __session_commit_transaction (/data/3.0/rc7d/bin/mongod)",
    "              d6d313 mongo::WiredTigerRecoveryUnit::_txnClose(bool) (/data/3.0/rc7d/bin/mongod)",
    "              d6d69a mongo::WiredTigerRecoveryUnit::_commit() (/data/3.0/rc7d/bin/mongod)",
    "              9133e4 mongo::WriteUnitOfWork::commit() (/data/3.0/rc7d/bin/mongod)",
    "              9addc1 mongo::WriteBatchExecutor::execOneInsert(mongo::WriteBatchExecutor::ExecInsertsState*, mongo::WriteErrorDetail**) (/data/3.0/rc7d/bin/mongod)",
    "              9ae8a6 mongo::WriteBatchExecutor::execInserts(mongo::BatchedCommandRequest const&, std::vector<mongo::WriteErrorDetail*, std::allocator<mongo::WriteErro>",
    "              9ae987 mongo::WriteBatchExecutor::bulkExecute(mongo::BatchedCommandRequest const&, std::vector<mongo::BatchedUpsertDetail*, std::allocator<mongo::Batche>",
    "              9af091 mongo::WriteBatchExecutor::executeBatch(mongo::BatchedCommandRequest const&, mongo::BatchedCommandResponse*) (/data/3.0/rc7d/bin/mongod)",
    "              9b1c5c mongo::WriteCmd::run(mongo::OperationContext*, std::string const&, mongo::BSONObj&, int, std::string&, mongo::BSONObjBuilder&, bool) (/data/3.0/r>",
    "              9d1531 mongo::_execCommand(mongo::OperationContext*, mongo::Command*, std::string const&, mongo::BSONObj&, int, std::string&, mongo::BSONObjBuilder&, bo>",
    "              9d2508 mongo::Command::execCommand(mongo::OperationContext*, mongo::Command*, int, char const*, mongo::BSONObj&, mongo::BSONObjBuilder&, bool) (/data/3.>",
    "              9d30eb mongo::_runCommands(mongo::OperationContext*, char const*, mongo::BSONObj&, mongo::_BufBuilder<mongo::TrivialAllocator>&, mongo::BSONObjBuilder&,>",
    "              b9aabe mongo::runQuery(mongo::OperationContext*, mongo::Message&, mongo::QueryMessage&, mongo::NamespaceString const&, mongo::CurOp&, mongo::Message&, b>",
    "              aafb19 mongo::assembleResponse(mongo::OperationContext*, mongo::Message&, mongo::DbResponse&, mongo::HostAndPort const&, bool) (/data/3.0/rc7d/bin/mongo>",
    "              806f08 mongo::MyMessageHandler::process(mongo::Message&, mongo::AbstractMessagingPort*, mongo::LastError*) (/data/3.0/rc7d/bin/mongod)",
    "              f05a59 mongo::PortMessageServer::handleIncomingMsg(void*) (/data/3.0/rc7d/bin/mongod)",
    "        7f5881982f18 start_thread (/lib64/libpthread-2.17.so)",
]

BASE_SECOND = 10835064


def make_frame(ts: float, leaf: str = "__schedule", process: str = "mongod", pid: int = 28451,
               depth: int = 3) -> str:
    """Text for one sample: header, `depth` stack lines with `leaf` first, and a blank line."""
    lines = [f"{process} {pid} {ts:.6f}: cpu-clock:",
             f"    ffffffff8149767f {leaf} ([kernel.kallsyms])"]
    for i in range(1, depth):
        lines.append(f"    {0x400000 + i:x} caller_{i} (/usr/bin/{process})")
    return "\n".join(lines) + "\n\n"


def make_capture(samples) -> str:
    """samples: iterable of (timestamp, leaf) pairs."""
    return "".join(make_frame(ts, leaf) for ts, leaf in samples)


@pytest.fixture
def mongod_frame_body() -> str:
    return "\n".join(MONGOD_STACK) + "\n\n"


@pytest.fixture
def reference_capture() -> str:
    """92 samples spread over about two seconds; the first has the full 23-entry mongod stack."""
    parts = [MONGOD_HEADER + "\n" + "\n".join(MONGOD_STACK) + "\n\n"]
    parts.append(make_frame(10835064.656850, "__wt_log_write"))
    for i in range(90):
        parts.append(make_frame(10835064.70 + i * 0.02, ["__schedule", "memcpy", "__wt_txn_commit"][i % 3]))
    return "".join(parts)


TIMELINE_COUNTS = [1354, 1210, 987, 1502, 640]
TIMELINE_LEAVES = ["__schedule", "memcpy", "__wt_log_write", "pthread_mutex_lock",
                   "__wt_txn_commit", "snappy::Compress", "tcmalloc::Alloc"]


@pytest.fixture
def timeline_capture() -> str:
    """Five whole seconds; the first holds 1354 samples."""
    samples = []
    for s, n in enumerate(TIMELINE_COUNTS):
        for k in range(n):
            ts = BASE_SECOND + s + (k + 0.5) / n * 0.999
            samples.append((ts, TIMELINE_LEAVES[(k * k) % len(TIMELINE_LEAVES)]))
    return make_capture(samples)
