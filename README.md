# localact

Building blocks for running CI workflow jobs on your own machine.

The package is a library; it has no command of its own. It provides:

- **Context** (`localact.context`): `Context` is an immutable chain of values
  with cancellation. `with_value` / `value` store and look up values,
  `with_cancel` / `cancel` / `err` handle cancellation (a cancelled context
  reports a `Cancelled` error, as do contexts derived from it). Helpers keep
  a dry-run flag (`with_dryrun`, `is_dryrun`), a per-job error slot
  (`with_job_error_container`, `set_job_error`, `job_error`) and a logger
  (`with_logger`, `get_logger`, which falls back to the `localact` logger).
- **Matrix expansion** (`localact.cartesian.cartesian_product`): every
  combination of one value per key; an empty mapping or any empty list gives
  no combinations.
- **Terminal drawing** (`localact.draw`): `Pen` draws rows of boxes
  (`draw_boxes`) and arrows (`draw_arrow`) in a `Style` with ANSI colours
  (turned off by `CLICOLOR=0`). Each returns a `Drawing` whose `draw` writes
  it centred on a given width.
- **Plan reports** (`localact.report`): `draw_graph` draws stages of runs as
  boxes joined by arrows; `print_list` prints a table of stage, job ID, job
  name, workflow name, workflow file and events, with a note when job IDs
  repeat. A run is any object whose `str()` is its job name and that has
  `job_id` and a `workflow` with `name`, `file` and `on`.
- **Artifact server** (`localact.artifacts`): `ArtifactApp` is a WSGI
  application that accepts artifact uploads (plain or gzip, whole or in
  ranges) and serves listings and downloads below a base directory, stored
  through `LocalFileSystem` or any object with the same methods.
  `safe_resolve` keeps every request path inside that directory. `serve`
  starts the app on a background thread and returns a handle that stops it
  when called; with an empty path no server starts.
- **Configuration** (`localact.config`): `config_locations` lists the
  `.actrc` files (home, XDG config, current directory), `read_args_file`
  reads arguments from one, `collect_args` puts them before the given
  arguments, `parse_envs` and `read_envs` read `NAME=value` entries and
  dotenv files, `parse_matrix` reads `key:value` matrix filters (raising
  `ValueError` on a bad entry) and `default_image_survey` asks for a default
  image size and writes its platform flags to an rc file.
- **Secrets** (`localact.secrets.new_secrets`): builds a secret map from
  `NAME=value` or bare `NAME` entries; names are upper-cased, and a bare name
  is taken from the environment or asked for without echo.
- **Version notices** (`localact.notices`): `NoticeLoader` fetches notices in
  the background and logs them on `display`. Requests go to the URL in
  `ACT_NOTICE_URL`, carry the last ETag (kept in `etag_path()`), and are
  skipped when `ACT_DISABLE_VERSION_CHECK=1` or no URL is set.
- **Files and network** (`localact.files.copy_file`, `copy_dir`;
  `localact.network.outbound_ip`).

## Examples

Dry-run flag on a context:

```python
from localact.context import Context, is_dryrun, with_dryrun

ctx = with_dryrun(Context(), True)
assert is_dryrun(ctx)
assert not is_dryrun(Context())
```

Expand a matrix:

```python
from localact.cartesian import cartesian_product

combos = cartesian_product({"os": ["linux", "mac"], "py": ["3.10", "3.11"]})
assert len(combos) == 4
```

Draw boxes:

```python
import sys
from localact.draw import Pen, Style

drawing = Pen(Style.SINGLE_LINE, 96).draw_boxes("build", "test")
assert drawing.width == 19
drawing.draw(sys.stdout, 40)
```

Keep artifact paths inside their directory:

```python
from localact.artifacts import safe_resolve

assert safe_resolve("/srv/artifacts", "../../etc/passwd") == "/srv/artifacts/etc/passwd"
```

Run the artifact server:

```python
from localact.artifacts import serve

stop = serve("/tmp/artifacts", "127.0.0.1", 34567)
# ... upload to http://127.0.0.1:34567/upload/<run id>?itemPath=<path> ...
stop()
```

Parse option values:

```python
from localact.config import parse_envs, parse_matrix

assert parse_envs(["A=1", "B"]) == {"A": "1", "B": ""}
assert parse_matrix(["java:13"]) == {"java": {"13": True}}
```

## What the package does not do

It does not run workflows. There is no command to start, no job executor
or scheduler, no container handling, no cloning or inspection of git
repositories and no watching of files for changes. The pieces above are
meant to be used by a program that provides those.

## Requirements

Python 3.10 or later, and `python-dotenv`.