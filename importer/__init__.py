"""
Design
======

The importer loads bibliographic records for a library from a file of ISBNs.

General goals:

* All state is stored in the database and visible for reporting
* Celery tasks are ephemeral and while they may be retried they will always
  check the database to avoid conflicts and use transactions to prevent race
  conditions

The import process works like this:

1. A user uploads a delimited text file (CSV, TSV, pipe or semicolon separated)
   which contains one ISBN per row, optionally below a header row naming the
   ISBN column.
2. The file is parsed and every identifier is normalized to the 13-digit form.
   Invalid identifiers are dropped and duplicates only count once. An ImportJob
   is created which records the identifiers and a background Celery task is
   launched to process them.
3. The task splits the identifiers into fixed-size chunks and submits every
   chunk to a shared thread pool. Each identifier in a chunk is looked up in the
   metadata service and retried a small number of times before it is counted as
   failed.
4. As each chunk finishes its tallies are merged into the ImportJob inside a
   transaction which holds a row lock, so progress is always consistent even
   when several workers report at once. A progress snapshot is broadcast to any
   websocket subscribers after every merge.
5. When every chunk has been merged the job is marked as completed and the user
   who requested the import is sent a summary email.
"""
