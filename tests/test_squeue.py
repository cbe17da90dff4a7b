from slurm_log_dashboard.models import LiveQueueRecord
from slurm_log_dashboard.squeue import parse_squeue_output, state_label


def test_parse_squeue_output_maps_columns():
    records = parse_squeue_output("42 gpu myjob bob R 1:02:03 2 node[01-02]")

    assert records == [
        LiveQueueRecord(
            job_id="42",
            partition="gpu",
            name="myjob",
            user="bob",
            state="R",
            time="1:02:03",
            nodes=2,
            nodelist="node[01-02]",
        )
    ]


def test_parse_squeue_output_skips_header_line():
    output = "\n".join(
        [
            "             JOBID PARTITION     NAME     USER ST       TIME  NODES NODELIST(REASON)",
            "              1234       cpu    train    alice PD       0:00      1 (Priority)",
            "            1235_7       gpu     eval      bob  R      12:34      4 gpu[01-04]",
        ]
    )

    records = parse_squeue_output(output)

    assert [record.job_id for record in records] == ["1234", "1235_7"]
    assert records[0].state == "PD"
    assert records[0].nodelist == "(Priority)"
    assert records[1].nodes == 4


def test_parse_squeue_output_rejoins_nodelist_with_spaces():
    records = parse_squeue_output("9 gpu job carol PD 0:00 1 (Resources, Priority)")

    assert records[0].nodelist == "(Resources, Priority)"


def test_parse_squeue_output_drops_short_lines():
    output = "\n".join(
        [
            "1 gpu job alice R 0:01 1",
            "2 gpu job alice R 0:01 1 node01",
        ]
    )

    records = parse_squeue_output(output)

    assert [record.job_id for record in records] == ["2"]


def test_parse_squeue_output_entirely_malformed_returns_empty():
    assert parse_squeue_output("this is not squeue\nneither is this") == []
    assert parse_squeue_output("") == []


def test_parse_squeue_output_defaults_unparsable_nodes_to_zero():
    records = parse_squeue_output("3 gpu job dave R 0:05 n/a node07")

    assert records[0].nodes == 0


def test_parse_squeue_output_accepts_bytes():
    records = parse_squeue_output(b"JOBID PARTITION NAME USER ST TIME NODES NODELIST\n5 cpu a eve R 0:01 1 n1\n")

    assert records[0].user == "eve"


def test_state_label():
    assert state_label("R") == "RUNNING"
    assert state_label("PD") == "PENDING"
    assert state_label("CF") == "CF"
