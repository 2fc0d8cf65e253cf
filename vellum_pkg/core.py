import os
import logging
import time
import threading
import zlib
from datetime import datetime
from concurrent.futures import ProcessPoolExecutor

from .analysis import analyze_file, discover_content_files, get_file_link
from .errors import ContentError
from .markdown_renderer import MarkdownRenderer
from .minify import minify_css, minify_js
from .post_list import build_post_list
from .results import ContentResult, FileReport, OnceCell
from .rewriter import RewriteEngine
from .templates import TemplateRepository

# Multiprocessing only pays off from around this many files
PARALLEL_THRESHOLD = 12

COMPRESSIBLE_EXTENSIONS = ('.html', '.css', '.js', '.svg', '.txt', '.json', '.xml')

# Thread-local storage for ContentProcessor instances
thread_local = threading.local()


def initializer(project_dir, output_dir, templates, production, compress):
    """Initialize ContentProcessor instance in thread-local storage for each worker process."""
    thread_local.content_processor = ContentProcessor(
        project_dir, output_dir, templates, production=production, compress=compress
    )


def analyze_task(path):
    return thread_local.content_processor.analyze(path)


def render_task(analysis, post_list):
    return thread_local.content_processor.render(analysis, post_list)


def deflate(data):
    """Compress data for serving with `Content-Encoding: deflate`."""
    return zlib.compress(data, 9)


class ContentProcessor:
    """Analyses and renders single content files; one instance per worker."""

    def __init__(self, project_dir, output_dir, templates, production=False, compress=True):
        self.project_dir = project_dir
        self.content_dir = os.path.join(project_dir, 'content')
        self.output_dir = output_dir
        self.templates = templates
        self.production = production
        self.compress = compress
        self.logger = logging.getLogger('ContentProcessor')

        self.renderer = MarkdownRenderer()
        self.engine = RewriteEngine(templates, production=production)

    def analyze(self, path):
        """First wave: returns `(analysis or None, report)`."""
        report = FileReport(str(path))
        try:
            analysis = analyze_file(path, self.project_dir, self.content_dir, self.renderer, report)
        except ContentError as e:
            report.fail(e)
            return None, report
        except (IOError, OSError) as e:
            self.logger.error(f"Failed to read content file {path}: {e}")
            report.fail(e)
            return None, report
        except Exception as e:
            self.logger.error(f"Unexpected error analyzing {path}: {e}")
            report.fail(e)
            return None, report
        return analysis, report

    def render(self, analysis, post_list):
        """Second wave: expand the page skeleton and write the output files."""
        report = FileReport(str(analysis.path))
        try:
            html = self.engine.rewrite(analysis.template_path, analysis.variables, post_list)
            self.write_output(self.output_path(analysis.path), html)
        except ContentError as e:
            report.fail(e)
        except (IOError, OSError) as e:
            self.logger.error(f"Failed to render {analysis.path}: {e}")
            report.fail(e)
        except Exception as e:
            self.logger.error(f"Unexpected error rendering {analysis.path}: {e}")
            report.fail(e)
        return report

    def output_path(self, path):
        link = get_file_link(self.content_dir, path)
        return os.path.join(self.output_dir, *link.split('/')) + '.html'

    def write_output(self, output_path, data):
        """Write a page and, if enabled, its deflate-compressed sibling."""
        os.makedirs(os.path.dirname(output_path), exist_ok=True)
        with open(output_path, 'wb') as f:
            f.write(data)
        if self.compress:
            with open(output_path + '.deflate', 'wb') as f:
                f.write(deflate(data))
        self.logger.debug(f"Generated HTML: {output_path}")


class InfoFilter(logging.Filter):
    """Filter to allow only selected INFO messages, and every warning or error, on the console."""
    def filter(self, record):
        if record.levelno >= logging.WARNING:
            return True
        allowed_messages = [
            "Site build completed in",
            "Generated ",
            "Loaded ",
            "Building post list",
            "Using multiprocessing",
            "Using single-threaded",
            "Copied static files",
        ]
        return any(msg in record.getMessage() for msg in allowed_messages)


class Vellum:
    def __init__(self, project_dir='.', output_dir='output', production=False, compress=True,
                 workers=None, strict=False, log_dir='logs'):
        self.project_dir = project_dir
        self.content_dir = os.path.join(project_dir, 'content')
        self.static_dir = os.path.join(project_dir, 'static')
        self.output_dir = output_dir
        self.production = production
        self.compress = compress
        self.workers = workers or os.cpu_count()
        self.strict = strict
        self.log_dir = log_dir
        self.templates = None
        self.post_list = None
        self.result = ContentResult()

        self.setup_logging()

    def setup_logging(self):
        """Set up logging configuration."""
        self.logger = logging.getLogger('Vellum')
        self.logger.setLevel(logging.DEBUG)

        if not self.logger.handlers:
            # Console handler with filter
            console_handler = logging.StreamHandler()
            console_handler.setLevel(logging.INFO)
            console_handler.addFilter(InfoFilter())
            console_formatter = logging.Formatter('%(message)s')
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)

            # File handler for all logs
            if self.log_dir:
                os.makedirs(self.log_dir, exist_ok=True)
                log_filename = datetime.now().strftime('vellum_%Y-%m-%d_%H-%M-%S.log')
                log_filepath = os.path.join(self.log_dir, log_filename)

                file_handler = logging.FileHandler(log_filepath)
                file_handler.setLevel(logging.DEBUG)
                file_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
                file_handler.setFormatter(file_formatter)
                self.logger.addHandler(file_handler)

        # Worker loggers share the build handlers
        processor_logger = logging.getLogger('ContentProcessor')
        processor_logger.setLevel(logging.DEBUG)
        processor_logger.handlers = self.logger.handlers

    def load_templates(self):
        """Load template fragments; a failure here aborts the build."""
        self.templates = TemplateRepository.load(self.project_dir)
        self.logger.info(f"Loaded {len(self.templates)} templates from {self.project_dir}")
        return self.templates

    def aggregate(self, analyses):
        """Build the global post list once every file has been analysed."""
        self.post_list.set(build_post_list(analyses))

    def build_content(self):
        """Analyse and render every content file using adaptive processing."""
        files = discover_content_files(self.content_dir)
        if not files:
            self.logger.warning("No content files found to process.")

        self.post_list = OnceCell()
        if len(files) >= PARALLEL_THRESHOLD:
            self.logger.info(f"Using multiprocessing for {len(files)} files with {self.workers} workers")
            self._build_with_multiprocessing(files)
        else:
            self.logger.info(f"Using single-threaded processing for {len(files)} files")
            self._build_single_threaded(files)

    def _build_single_threaded(self, files):
        """Process content in the current process for small workloads."""
        processor = ContentProcessor(
            self.project_dir, self.output_dir, self.templates,
            production=self.production, compress=self.compress
        )

        # Phase 1: analyse every file
        analyses = []
        for path in files:
            analysis, report = processor.analyze(path)
            self._collect_analysis(analysis, report, analyses)

        self.aggregate(analyses)

        # Phase 2: render, only after the post list exists
        for analysis in analyses:
            self.result.add(processor.render(analysis, self.post_list), generated=True)

    def _build_with_multiprocessing(self, files):
        """Process content with a process pool for large workloads."""
        with ProcessPoolExecutor(
            max_workers=self.workers,
            initializer=initializer,
            initargs=(self.project_dir, self.output_dir, self.templates,
                      self.production, self.compress)
        ) as executor:
            # Phase 1: analyse every file, joined in submission order
            analyses = []
            analysis_futures = {executor.submit(analyze_task, path): path for path in files}
            for future, path in analysis_futures.items():
                analysis, report = future.result()
                self._collect_analysis(analysis, report, analyses)

            self.aggregate(analyses)

            # Phase 2: render with the assigned post list
            render_futures = {
                executor.submit(render_task, analysis, self.post_list): analysis.path
                for analysis in analyses
            }
            for future, path in render_futures.items():
                self.result.add(future.result(), generated=True)

    def _collect_analysis(self, analysis, report, analyses):
        if analysis is None:
            self.result.add(report)
            return
        self.result.warnings.extend(report.warnings)
        analyses.append(analysis)

    def process_static(self):
        """Copy static files to the output, minifying CSS and JS in production."""
        if not os.path.isdir(self.static_dir):
            return

        copied = 0
        for root, dirs, files in os.walk(self.static_dir):
            dirs.sort()
            for file in sorted(files):
                source_path = os.path.join(root, file)
                relative_path = os.path.relpath(source_path, self.project_dir)
                output_path = os.path.join(self.output_dir, relative_path)
                report = FileReport(source_path)
                try:
                    with open(source_path, 'rb') as f:
                        data = f.read()
                    if self.production:
                        data = self.minify_asset(file, data)
                    os.makedirs(os.path.dirname(output_path), exist_ok=True)
                    with open(output_path, 'wb') as f:
                        f.write(data)
                    if self.compress and file.endswith(COMPRESSIBLE_EXTENSIONS):
                        with open(output_path + '.deflate', 'wb') as f:
                            f.write(deflate(data))
                    copied += 1
                except (IOError, OSError, UnicodeDecodeError) as e:
                    self.logger.error(f"Failed to copy static file {source_path}: {e}")
                    report.fail(e)
                    self.result.add(report)

        self.logger.info(f"Copied static files: {copied}")

    def minify_asset(self, file_name, data):
        """Minify CSS and JS assets."""
        if file_name.endswith('.css') and not file_name.endswith('.min.css'):
            minified_css = minify_css(data.decode('utf-8'))
            self.logger.debug(f"Minified CSS: {file_name}")
            return minified_css.encode('utf-8')
        if file_name.endswith('.js') and not file_name.endswith('.min.js'):
            minified_js = minify_js(data.decode('utf-8'))
            self.logger.debug(f"Minified JS: {file_name}")
            return minified_js.encode('utf-8')
        return data

    def build(self):
        """
        Main build process.

        Returns the ContentResult of the run. Template loading and post list
        failures are raised; failures of single files are only recorded.
        """
        start_time = time.time()
        self.result = ContentResult()
        os.makedirs(self.output_dir, exist_ok=True)

        self.load_templates()
        self.build_content()
        self.process_static()

        self.logger.info(f"Site build completed in {time.time() - start_time:.6f} seconds.")
        self.logger.info(self.result.summary())
        return self.result

    @property
    def failed(self):
        """Whether the run should exit with a failure status."""
        return self.strict and self.result.has_errors
