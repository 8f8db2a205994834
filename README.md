# btool

`btool` takes snapshots of a directory and keeps them in a hidden
`.btool` directory inside it. File contents are split into
variable-sized chunks (4 KB to 16 KB, about 8 KB on average) by a rolling
Rabin fingerprint and stored by their SHA-256 hash. Content that is the
same across files or across snapshots is stored only once.

## Installation

```
pip install .
```

This installs the `btool` command. It needs no libraries beyond the
Python standard library.

## Usage

Take a snapshot of the current directory, or of a given one:

```
btool snap -m "before refactoring"
btool snap path/to/project -m "nightly"
```

List the snapshots of a directory, with their source size, the size of
the data each one added, and the total size of all stored pack files:

```
btool list
btool list path/to/project
```

Restore a snapshot. A snapshot is named by its numeric ID or by a unique
prefix of its hash; a prefix that matches several snapshots is an error.
`-d/--directory` names the directory holding the `.btool` repository
(default: the current directory) and `-o/--output` the directory to
restore into (default: the same directory). The output directory is
emptied first and then made to match the snapshot; when restoring in
place, the `.btool` directory itself is kept.

```
btool restore 3
btool restore 3 -d path/to/project -o path/to/restored
btool restore 1a2b3c4
```

Remove every snapshot older than a given one and drop the stored data
that only those snapshots used:

```
btool prune 5
btool prune 5 path/to/project
```

On an error the command prints the message and exits with status 1.

## Ignoring files

Put gitignore-style patterns in a `.btoolignore` file at the top of the
directory. Lines starting with `#` and blank lines are skipped, `!`
re-includes what an earlier pattern excluded, and the last matching
pattern wins. Backslashes are read as `/`. A pattern without a `/`
matches a name at any depth (`*.log`); a pattern containing a `/` is
matched from the top of the directory. A pattern ending in `/` matches
that directory and everything below it (`build/`). The `.git` and
`.btool` directories and the `.btoolignore` file itself are never
included in a snapshot.

```
# build output
build/
*.log
!important.log
```

## Using it from Python

The commands are available as functions:

```python
from btool.snap import snap
from btool.listing import list_snaps
from btool.restore import restore
from btool.prune import prune, PruneOptions
from btool.snaps import get_sorted_snaps, find_snap

snap_hash = snap("project", "first snapshot")   # returns the snapshot's hash
for detail in get_sorted_snaps("project"):
    print(detail.id, detail.hash[:7], detail.timestamp, detail.message)

list_snaps("project")                          # prints the table
restore("project", "1", "restored")            # returns the restored SnapDetail
deleted = prune("project", PruneOptions(snap_identifier="2"))  # number removed
```

Lower-level pieces: `btool.objectstore.ObjectStore` (queue objects with
`write_object`, write them as one pack with `commit`, read them back with
`read_object`), `btool.chunker.chunk_file`, `btool.hasher.get_hash` and
`btool.config.is_path_ignored`. `btool.cli.snapshot_completions` returns
suggestions for snapshot identifiers, one per snapshot.

Errors are raised as `btool.errors.BtoolError` and its subclasses
`ObjectNotFoundError` and `SnapNotFoundError`.

## What it does not do

There is no command that generates shell completion scripts; the
suggestions from `snapshot_completions` are only available from Python.
Snapshots are stored locally inside the directory they belong to; there
is no remote storage, encryption or compression.

## Repository layout

```
.btool/
  index.json      object hash -> pack file, offset and length
  packs/          pack files, one per snapshot that stored new data
  snaps/          one JSON manifest per snapshot, named by its hash
  meta/counter    the next snapshot ID
```