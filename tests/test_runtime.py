import io

import pytest

from modelhost import (
    CompileError, IndexSet, Model, ResultSink, RunError, RunStatus, Runtime,
    SparseArray, StaleArrayError,
)
from conftest import RecordingHandler, write_model


def _load(path):
    runtime = Runtime()
    return runtime.load_model(runtime.compile(path))


def test_compile_reads_declared_parameters(calctest_path):
    compiled = Runtime().compile(calctest_path)
    assert compiled.name == "calctest"
    assert compiled.parameters == {"NUM": 10, "SOLFILE": ""}


def test_compile_missing_file(tmp_path):
    with pytest.raises(CompileError):
        Runtime().compile(tmp_path / "nope.py")


def test_compile_syntax_error(tmp_path):
    path = write_model(tmp_path, "def main(ctx:\n    pass\n")
    with pytest.raises(CompileError):
        Runtime().compile(path)


def test_compile_requires_main_and_parameters(tmp_path):
    with pytest.raises(CompileError):
        Runtime().compile(write_model(tmp_path, "PARAMETERS = {}\n", name="nomain"))
    with pytest.raises(CompileError):
        Runtime().compile(write_model(tmp_path, "def main(ctx):\n    pass\n", name="noparams"))


def test_compile_rejects_unsupported_parameter_type(tmp_path):
    path = write_model(tmp_path, "PARAMETERS = {'X': [1]}\ndef main(ctx):\n    pass\n")
    with pytest.raises(CompileError):
        Runtime().compile(path)


def test_saved_binary_can_be_loaded(tmp_path, calctest_path):
    runtime = Runtime()
    bim = runtime.compile(calctest_path).save(tmp_path / "calctest.bim")
    model = runtime.load_model(bim)
    assert isinstance(model, Model)
    assert model.parameters["NUM"] == 10


def test_load_rejects_foreign_binary(tmp_path):
    path = tmp_path / "junk.bim"
    path.write_bytes(b"not a model")
    with pytest.raises(CompileError):
        Runtime().load_model(path)


def test_run_calctest_sends_squares(calctest_path):
    model = _load(calctest_path)
    sink = ResultSink()
    model.bind("resultsink", sink)
    model.exec_params = "NUM=200,SOLFILE='python:resultsink'"
    out = io.StringIO()
    assert model.run(stream=out) is RunStatus.OK
    assert out.getvalue() == "Numbers generated: 14\n"
    res = sink["Res"]
    assert len(res) == 14
    assert [(r.ind, r.val) for r in res] == [(i, float(i * i)) for i in range(1, 15)]
    assert model.exit_code == 0


def test_arrays_are_released_after_callback(tmp_path):
    kept = []

    class Keeper:
        def receive(self, label, value):
            kept.append(value)
            return True

    path = write_model(tmp_path, (
        "PARAMETERS = {'SOLFILE': ''}\n"
        "def main(ctx):\n"
        "    s = ctx.index_set([1, 2])\n"
        "    ctx.initializations_to(ctx.params['SOLFILE'], {'A': ctx.sparse_array([s], {1: 1.0})})\n"
    ))
    model = _load(path)
    model.bind("k", Keeper())
    model.exec_params = "SOLFILE='python:k'"
    model.run(stream=io.StringIO())
    with pytest.raises(StaleArrayError):
        kept[0].size


def test_rejected_item_marks_exchange_failed(calctest_path):
    model = _load(calctest_path)
    handler = RecordingHandler(answer=False)
    model.bind("h", handler)
    model.exec_params = "NUM=4,SOLFILE='python:h'"
    assert model.run(stream=io.StringIO()) is RunStatus.EXCHANGE_FAILED
    assert [label for label, _ in handler.received] == ["Res"]


def test_items_after_rejection_are_not_sent(tmp_path):
    path = write_model(tmp_path, (
        "PARAMETERS = {'SOLFILE': ''}\n"
        "def main(ctx):\n"
        "    ctx.initializations_to(ctx.params['SOLFILE'], {'A': 1, 'B': 2})\n"
    ))
    model = _load(path)
    handler = RecordingHandler(answer=False)
    model.bind("h", handler)
    model.exec_params = "SOLFILE='python:h'"
    assert model.run(stream=io.StringIO()) is RunStatus.EXCHANGE_FAILED
    assert handler.received == [("A", "1")]


def test_unknown_parameter_is_a_run_error(calctest_path):
    model = _load(calctest_path)
    model.exec_params = "NUMBER=3"
    with pytest.raises(RunError):
        model.run(stream=io.StringIO())
    assert model.status is RunStatus.NOT_RUN


def test_badly_typed_parameter_is_a_run_error(calctest_path):
    model = _load(calctest_path)
    model.exec_params = "NUM=many"
    with pytest.raises(RunError):
        model.run(stream=io.StringIO())


def test_unbound_handler_is_a_run_error(calctest_path):
    model = _load(calctest_path)
    model.exec_params = "NUM=4,SOLFILE='python:missing'"
    with pytest.raises(RunError):
        model.run(stream=io.StringIO())


def test_unsupported_destination_is_a_run_error(calctest_path):
    model = _load(calctest_path)
    model.exec_params = "NUM=4,SOLFILE='results.dat'"
    with pytest.raises(RunError):
        model.run(stream=io.StringIO())


def test_model_exception_is_wrapped(tmp_path):
    path = write_model(tmp_path, "PARAMETERS = {}\ndef main(ctx):\n    raise ValueError('boom')\n")
    model = _load(path)
    with pytest.raises(RunError, match="boom"):
        model.run(stream=io.StringIO())


def test_exit_code_from_main(tmp_path):
    path = write_model(tmp_path, "PARAMETERS = {}\ndef main(ctx):\n    return 3\n")
    model = _load(path)
    assert model.run(stream=io.StringIO()) is RunStatus.OK
    assert model.exit_code == 3


def test_context_is_unusable_after_run(tmp_path):
    path = write_model(tmp_path, (
        "PARAMETERS = {}\n"
        "saved = []\n"
        "def main(ctx):\n"
        "    saved.append(ctx)\n"
    ))
    runtime = Runtime()
    model = runtime.load_model(runtime.compile(path))
    model.run(stream=io.StringIO())
    ctx = model._module.saved[0]
    with pytest.raises(RunError):
        ctx.write("late")


def test_reentrant_run_is_refused(tmp_path):
    path = write_model(tmp_path, (
        "PARAMETERS = {'SOLFILE': ''}\n"
        "def main(ctx):\n"
        "    ctx.initializations_to(ctx.params['SOLFILE'], {'A': 1})\n"
    ))
    model = _load(path)
    errors = []

    class Reenter:
        def receive(self, label, value):
            try:
                model.run(stream=io.StringIO())
            except RunError as e:
                errors.append(e)
            return True

    model.bind("r", Reenter())
    model.exec_params = "SOLFILE='python:r'"
    assert model.run(stream=io.StringIO()) is RunStatus.OK
    assert len(errors) == 1


def test_reset_drops_bindings(calctest_path):
    model = _load(calctest_path)
    model.bind("resultsink", ResultSink())
    model.exec_params = "NUM=4,SOLFILE='python:resultsink'"
    assert model.run(stream=io.StringIO()) is RunStatus.OK
    model.reset()
    assert model.status is RunStatus.NOT_RUN
    with pytest.raises(RunError):
        model.run(stream=io.StringIO())


def test_bind_requires_receive_method(calctest_path):
    with pytest.raises(TypeError):
        _load(calctest_path).bind("x", object())


def test_missing_bytecode_file_is_a_compile_error(tmp_path, calctest_path):
    runtime = Runtime()
    bim = runtime.compile(calctest_path).save(tmp_path / "calctest.bim")
    model = runtime.load_model(bim)
    assert model.name == "calctest"
    with pytest.raises(CompileError):
        runtime.load_model(tmp_path / "other.bim")


def test_saved_bytecode_runs_like_the_source(tmp_path, calctest_path):
    runtime = Runtime()
    model = runtime.load_model(runtime.compile(calctest_path).save(tmp_path / "calctest.bim"))
    sink = ResultSink()
    model.bind("resultsink", sink)
    model.exec_params = "NUM=30,SOLFILE='python:resultsink'"
    assert model.run(stream=io.StringIO()) is RunStatus.OK
    assert list(sink["Res"].labels) == [1, 2, 3, 4, 5]


def test_loaded_models_do_not_share_state(tmp_path):
    path = write_model(tmp_path, (
        "PARAMETERS = {}\n"
        "calls = []\n"
        "def main(ctx):\n"
        "    calls.append(1)\n"
    ))
    runtime = Runtime()
    compiled = runtime.compile(path)
    first = runtime.load_model(compiled)
    second = runtime.load_model(compiled)
    first.run(stream=io.StringIO())
    assert first._module.calls == [1]
    assert second._module.calls == []


def test_reset_releases_arrays_the_model_kept(tmp_path):
    path = write_model(tmp_path, (
        "PARAMETERS = {}\n"
        "kept = []\n"
        "def main(ctx):\n"
        "    s = ctx.index_set([1, 2, 3])\n"
        "    kept.append(ctx.sparse_array([s], {2: 4.0}))\n"
    ))
    model = _load(path)
    model.run(stream=io.StringIO())
    array = model._module.kept[0]
    assert array.get_as_real([1]) == 4.0
    model.reset()
    with pytest.raises(StaleArrayError):
        array.get_as_real([1])
