"""
Example: Collecting sparse model results through a callback

This example compiles the bundled calctest model, runs it with NUM=200 and
lets a ResultSink copy the reported array 'Res' into host memory.
"""

import sys
from pathlib import Path
import modelhost


def main():
    print()
    print("=" * 70)
    print("modelhost Example: Callback Exchange - Python")
    print("=" * 70)
    print()

    model_file = Path(modelhost.__file__).parent / "models" / "calctest.py"
    if len(sys.argv) > 1:
        model_file = Path(sys.argv[1])

    # Step 1: Compile and load the model
    runtime = modelhost.Runtime()
    model = runtime.load_model(runtime.compile(model_file))
    print(f"Model loaded: {model.name}, parameters {sorted(model.parameters)}")
    print()

    # Step 2: Bind the sink and pass the parameters
    sink = modelhost.ResultSink()
    model.bind("resultsink", sink)
    params = modelhost.ExecParameters(NUM=200).with_callback("resultsink")
    model.exec_params = params.to_exec_string()

    # Step 3: Run the model
    status = model.run()
    if status is not modelhost.RunStatus.OK:
        print(f"Data exchange failed: {status.value}")
        model.reset()
        return 1

    # Step 4: Display results
    res = sink["Res"]
    print()
    print(f"Found {len(res)} numbers")
    for record in res:
        print(f" {record.ind}^2 = {modelhost.format_value(record.val)}")
    print()

    # Step 5: Reset the model
    model.reset()
    return 0


if __name__ == "__main__":
    try:
        sys.exit(main())
    except modelhost.SolverInvocationFailure as e:
        print(f"Error: {e}")
        sys.exit(1)
    except Exception as e:
        print(f"Error: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)
