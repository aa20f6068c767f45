from cdh.supersede import supersede


def test_port_and_ancestry_passes(fake_runtime):
    on_port = fake_runtime.add_container("legacy", "someone/else:1", port=8080)
    same_repo = fake_runtime.add_container("renamed-app", "me/app:old", port=None)
    unrelated = fake_runtime.add_container("db", "postgres:16", port=5432)

    report = supersede(fake_runtime, 8080, "me/app")

    assert [r.id for r in report.removed] == [on_port, same_repo]
    assert report.failed == []
    assert report.ok
    assert list(fake_runtime.containers) == [unrelated]


def test_container_matching_both_passes_removed_once(fake_runtime):
    cid = fake_runtime.add_container("app", "me/app:old", port=8080)

    report = supersede(fake_runtime, 8080, "me/app")

    assert [r.id for r in report.removed] == [cid]
    assert [c for c in fake_runtime.calls if c[0] == "remove"] == [("remove", cid)]


def test_removal_failures_are_reported_not_raised(fake_runtime):
    stuck = fake_runtime.add_container("stuck", "me/app:old", port=8080)
    other = fake_runtime.add_container("other", "me/app:older")
    fake_runtime.fail_remove.add(stuck)

    report = supersede(fake_runtime, 8080, "me/app")

    assert [r.id for r in report.removed] == [other]
    assert len(report.failed) == 1
    assert report.failed[0].container.id == stuck
    assert report.failed[0].reason == "port"
    assert "cannot stop" in report.failed[0].error
    assert not report.ok


def test_nothing_to_do(fake_runtime):
    report = supersede(fake_runtime, None, None)
    assert report.removed == [] and report.failed == []
