# seriesjuggle

A library for named time series. It loads them from CSV files or ULog flight
logs, derives new series with transforms or user-defined functions, and moves
samples between collections. It uses only the standard library.

## Install

    pip install .

For the tests:

    pip install .[test]
    pytest

## Modules

### `seriesjuggle.plotdata`

- `Point(x, y)`: a frozen sample. `y` is a number or a string.
- `TimeSeries`: a named list of points with `attributes`, an optional `group`
  and `maximum_range_x`. It supports `len()`, iteration and indexing, and
  `push_back(point)` (which also takes an `(x, y)` pair) and `clear()`.
  `index_from_x(x)` returns the index of the point closest in time to `x`, or
  `None` when the series is empty.
- `PlotGroup(name, attributes)`.
- `PlotDataMap`: dictionaries `numeric`, `strings`, `user_defined` and
  `groups`. `add_numeric`, `add_string_series` and `get_or_create_group`
  return the existing entry or create it. `clear()` empties everything.
- `MonitoredValue(value=0.0, on_change=None)`: `set(value)` calls
  `on_change(value)` when the value changes by more than machine epsilon.
- `move_data(source, destination, remove_older)`: appends every point of the
  source's series to the matching destination series, creating missing series
  and groups and copying attributes. It empties the source series and returns
  a `MoveDataResult` with `added_curves`, `curves_updated` and `data_pushed`.

### `seriesjuggle.custom_function`

- `SnippetData`: `name`, `global_vars`, `function`, `linked_source`,
  `additional_sources`.
- `snippet_from_xml(element)` and `snippet_to_xml(snippet)` read and build a
  `<snippet>` element with `xml.etree.ElementTree`.
- `snippets_from_xml(source)` accepts an element, a string or bytes. It
  returns the snippets keyed by name and sorted. Empty text gives `{}`.
  Malformed XML raises `SnippetParseError`.
- `export_snippets(snippets)` builds a `<snippets>` element.
- `CustomFunction(snippet)` is an abstract base class. Subclasses implement
  `calculate_points(source, channels, index)`, which returns the points
  produced by one source sample. `calculate(plot_data, destination)` only
  processes source samples newer than the last destination point. An unknown
  additional channel raises `ValueError`. `calculate_and_add(plot_data)` writes
  into the numeric series named after the function, and removes that series
  again if it was new and the calculation failed. `to_xml()` returns the
  snippet as XML.

### `seriesjuggle.transforms`

`TimeSeriesTransform(source)` is incremental. `calculate()` processes the
source samples added since the last call and returns the `output` series.
`init()` starts over. `save_state()` and `load_state(state)` use dictionaries
of text values.

- `FirstDerivative`: finite difference, placed at the earlier sample's time.
- `IntegralTransform`: running trapezoidal integral.

  Both use the actual time step unless `use_custom_dt` is set, in which case
  they use `custom_dt`. `compute_sample_period()` stores an estimate of the
  source period in `custom_dt`.
- `MovingAverageFilter(source, samples=10, compensate_offset=False)`.
- `OutlierRemovalFilter(source, factor=100.0)`: drops isolated spikes. Its
  output lags the source by one sample.
- `ScaleTransform(source, time_offset=0.0, value_offset=0.0, value_scale=1.0)`,
  with `degrees_to_radians()` and `radians_to_degrees()`.
- `estimate_sample_period(points)`: the mean gap between times. With more than
  ten points it averages only the middle three fifths of the sorted gaps.

### `seriesjuggle.csv_loader`

- `parse_header(path)` returns the column names and the number of data lines.
  An empty name becomes `_Column_<index>`.
- `CsvLoader(time_axis=None).read_data(path, plot_data, time_column=None,
  time_format=None)` loads every column into a numeric series and returns the
  number of rows read. The `time_column` argument controls the time axis:
  - `None` uses the saved `time_axis`, or the row index if there is none.
  - `""` uses the row index.

  Timestamps that are not numbers are parsed with the `strptime` pattern
  `time_format`, as local time. A wrong column count, a decreasing time or an
  unparsable timestamp raises `CsvLoadError`. Two equal consecutive times
  emit a `UserWarning`. `save_state()` and `load_state(state)` keep the time
  axis.

### `seriesjuggle.ulog_format` and `seriesjuggle.ulog_parser`

- `ULogParser(data)` parses a whole ULog file held in memory.
- After construction it exposes `timeseries`, `parameters`, `info`, `logs`,
  `formats`, `subscriptions` and `file_start_time`.
- Timeseries names carry a `.NN` suffix for topics logged with several
  instances.
- Errors raise `ULogError`.
- `ulog_format` holds the record types (`MessageType`, `FieldType`, `Field`,
  `Format`, `Parameter`, `MessageLog`, `Subscription`, `ULogTimeseries`) and
  the parsers for single definition messages: `check_file_header`,
  `parse_format`, `parse_info`, `parse_parameter` and `parse_flag_bits`.

### `seriesjuggle.ulog_loader`

- `load_ulog(path, plot_data)` adds one numeric series per field, named
  `<topic>/<field>`, with times in seconds. It returns the parser.
- `info_rows(parser)` and `parameter_rows(parser)` return the metadata as
  sorted `(name, text)` pairs.
- `log_level_name(level)` and `format_log_time(timestamp)` format logged
  messages.

### `seriesjuggle.sample_streamer`

`DataStreamSample(seed=None)` fills its `data_map` with 150 sine waves
(`data_vect/<n>`), a string series `color`, and `tc/default` and `tc/red`.

- `push_single_cycle()` appends one sample to each series.
- `start()` runs a 50 Hz background thread until `shutdown()`.
- It works as a context manager.
- `on_data_received` is called after each cycle of the background loop.
- Hold `mutex` while reading `data_map` during streaming.

## Example

    from seriesjuggle.plotdata import PlotDataMap, Point
    from seriesjuggle.csv_loader import CsvLoader
    from seriesjuggle.transforms import FirstDerivative
    from seriesjuggle.custom_function import CustomFunction, SnippetData

    data = PlotDataMap()
    CsvLoader(time_axis="time").read_data("log.csv", data)

    acceleration = FirstDerivative(data.numeric["speed"]).calculate()

    class Doubled(CustomFunction):
        def calculate_points(self, source, channels, index):
            point = source[index]
            yield Point(point.x, 2 * point.y)

    Doubled(SnippetData(name="speed_x2", linked_source="speed")).calculate_and_add(data)

Loading a ULog file:

    from seriesjuggle.plotdata import PlotDataMap
    from seriesjuggle.ulog_loader import load_ulog, info_rows

    data = PlotDataMap()
    parser = load_ulog("flight.ulg", data)
    print(sorted(data.numeric))
    print(info_rows(parser))

## What it does not do

- It is a library only: it has no command-line tool, no plotting and no
  graphical interface.
- `CustomFunction` does not evaluate script text. The `function` and
  `global_vars` of a snippet are stored and exchanged as XML, but computing
  points is left to a subclass's `calculate_points`.
- There are no network streamers. The only data source that produces live
  samples is the synthetic `DataStreamSample`.