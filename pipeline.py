import argparse
import logging
from sqlalchemy import create_engine, inspect, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.exc import SQLAlchemyError

from models import BASE_TABLES
from views import create_views, build_payment_analysis
from helpers import parse_as_of, money_sum
import queries
import reports

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("reports")

REPORTS = [
    "row_counts",
    "missing_values",
    "duplicate_rentals",
    "revenue_by_category",
    "monthly_revenue",
    "store_performance",
    "top_customers",
    "top_films",
    "inactive_customers",
]

def make_session(source_url: str, isolation_level=None):
    """
    Connects to the rental database. Everything here only reads, so one
    engine is enough. isolation_level is passed straight to SQLAlchemy, use
    REPEATABLE READ on mysql/postgres if the tables can change while the
    reports run and you want them all to agree.
    """
    kwargs = {"pool_pre_ping": True}
    if isolation_level:
        kwargs["isolation_level"] = isolation_level
    engine = create_engine(source_url, **kwargs)
    Session = sessionmaker(bind=engine)
    return engine, Session

def check_tables(engine):
    """Returns the base tables that are missing, empty list means we're good to go."""
    existing = set(inspect(engine).get_table_names())
    missing = [t for t in BASE_TABLES if t not in existing]
    if missing:
        logger.warning("Missing tables: %s", ", ".join(missing))
    else:
        logger.info("All %d base tables found.", len(BASE_TABLES))
    return missing

def preview(session, table_name, limit=5):
    model = BASE_TABLES.get(table_name)
    if model is None:
        raise ValueError(f"Unknown table: {table_name}")
    return session.scalars(select(model).limit(limit)).all()

def init_views(engine):
    try:
        create_views(engine)
    except SQLAlchemyError:
        logger.exception("Creating views failed.")
        raise

def build_query(name, dialect_name, as_of=None, limit=reports.TOP_N):
    if name == "row_counts":
        return queries.row_counts_query()
    if name == "missing_values":
        return queries.missing_values_query()
    if name == "duplicate_rentals":
        return queries.duplicate_rentals_query()
    if name == "revenue_by_category":
        return queries.revenue_by_category_query()
    if name == "monthly_revenue":
        return queries.monthly_revenue_query(dialect_name)
    if name == "store_performance":
        return queries.store_performance_query()
    if name == "top_customers":
        return queries.top_customers_query(limit)
    if name == "top_films":
        return queries.top_films_query(limit)
    if name == "inactive_customers":
        return queries.inactive_customers_query(parse_as_of(as_of))
    raise ValueError(f"Unknown report: {name}")

# the SQL rows come back as plain Row objects, this maps them onto the same
# named tuples the in-memory reports return
ROW_TYPES = {
    "row_counts": reports.TableCount,
    "missing_values": reports.MissingValues,
    "duplicate_rentals": reports.DuplicateRental,
    "revenue_by_category": reports.CategoryRevenue,
    "monthly_revenue": reports.MonthlyRevenue,
    "store_performance": reports.StorePerformance,
    "top_customers": reports.TopCustomer,
    "top_films": reports.TopFilm,
    "inactive_customers": reports.InactiveCustomer,
}

def run_report(session, name, as_of=None, limit=reports.TOP_N):
    query = build_query(name, session.get_bind().dialect.name, as_of=as_of, limit=limit)
    row_type = ROW_TYPES[name]
    try:
        rows = [row_type(*row) for row in session.execute(query)]
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Report %s failed; transaction rolled back.", name)
        raise
    logger.info("Report %s returned %d rows", name, len(rows))
    if name == "missing_values":
        return rows[0]
    return rows

def run_all(session, as_of=None, limit=reports.TOP_N):
    """
    Runs every report inside one transaction so they all read the same data,
    otherwise the revenue totals could disagree if someone writes in between.
    """
    as_of = parse_as_of(as_of)
    logger.info("Running %d reports (as of %s)", len(REPORTS), as_of)
    results = {}
    try:
        for name in REPORTS:
            results[name] = run_report(session, name, as_of=as_of, limit=limit)
        results["payment_total"] = session.scalar(queries.total_revenue_query())
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Running reports failed; transaction rolled back.")
        raise
    # nothing was written, ending the transaction just lets go of the snapshot
    session.rollback()
    return results

def run_in_memory(session, as_of=None, limit=reports.TOP_N):
    """
    Same reports, but the tables get loaded once and everything after that
    happens in Python through views.build_* and reports.*.
    """
    as_of = parse_as_of(as_of)
    try:
        tables = {name: session.scalars(select(model)).all() for name, model in BASE_TABLES.items()}
    except SQLAlchemyError:
        session.rollback()
        logger.exception("Loading base tables failed; transaction rolled back.")
        raise
    logger.info("Loaded base tables: %s", ", ".join(f"{n}={len(r)}" for n, r in tables.items()))

    rows = build_payment_analysis(
        payments=tables["payment"],
        rentals=tables["rental"],
        inventory=tables["inventory"],
        films=tables["film"],
        film_categories=tables["film_category"],
        categories=tables["category"],
        customers=tables["customer"],
    )
    results = {
        "row_counts": reports.row_counts(tables),
        "missing_values": reports.missing_values(tables["rental"], tables["payment"]),
        "duplicate_rentals": reports.duplicate_rentals(tables["rental"]),
        "revenue_by_category": reports.revenue_by_category(rows),
        "monthly_revenue": reports.monthly_revenue(rows),
        "store_performance": reports.store_performance(rows),
        "top_customers": reports.top_customers(rows, limit),
        "top_films": reports.top_films(rows, limit),
        "inactive_customers": reports.inactive_customers(tables["customer"], tables["rental"], as_of),
        "payment_total": money_sum(r.payment_amount for r in rows),
    }
    # rollback expires the loaded objects, so only do it once everything above is computed
    session.rollback()
    return results

def validate(results, limit=reports.TOP_N):
    """
    Sanity checks on a set of report results (from run_all or run_in_memory).
    Anything that looks off goes into problems, returns (ok, problems).
    """
    problems = []

    by_category = money_sum(r.total_revenue for r in results["revenue_by_category"])
    by_month = money_sum(r.monthly_revenue for r in results["monthly_revenue"])
    by_store = money_sum(r.total_revenue for r in results["store_performance"])
    logger.info("Revenue - by category: %s, by month: %s, by store: %s", by_category, by_month, by_store)
    if not (by_category == by_month == by_store):
        problems.append(f"Revenue totals don't match (category={by_category} month={by_month} store={by_store})")
    total = results.get("payment_total")
    if total is not None and total != by_category:
        problems.append(f"Revenue by category {by_category} differs from payment total {total}")

    if results["duplicate_rentals"]:
        problems.append(f"{len(results['duplicate_rentals'])} rental ids appear more than once")

    for name, metric in (("top_customers", "total_spent"), ("top_films", "total_rentals")):
        rows = results[name]
        if len(rows) > limit:
            problems.append(f"{name} returned {len(rows)} rows (limit {limit})")
        values = [getattr(r, metric) for r in rows]
        if any(a is not None and b is not None and a < b for a, b in zip(values, values[1:])):
            problems.append(f"{name} is not sorted by {metric}")

    if problems:
        logger.warning("Validation problems found:\n%s", "\n".join(problems))
        return False, problems
    logger.info("Validation passed.")
    return True, []

def print_report(name, rows):
    if not isinstance(rows, list):
        rows = [rows]
    print(f"== {name} ({len(rows)} rows)")
    if rows and hasattr(rows[0], "_fields"):
        print("\t".join(rows[0]._fields))
    for row in rows:
        print("\t".join("" if v is None else str(v) for v in row))

def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Rental store reports")
    parser.add_argument("--source", required=True, help="database URL, e.g. mysql+pymysql://user:pw@host/sakila")
    parser.add_argument("--as-of", default=None, help="evaluation date for the churn report (default: today)")
    parser.add_argument("--limit", type=int, default=reports.TOP_N)
    parser.add_argument("--engine", choices=["sql", "memory"], default="sql")
    parser.add_argument("--isolation-level", default=None)
    parser.add_argument("--report", choices=REPORTS)
    parser.add_argument("--table", choices=list(BASE_TABLES), default="film")
    parser.add_argument("command", choices=["check", "preview", "init-views", "report", "all", "validate"])
    return parser.parse_args(argv)

def collect(session, args):
    if args.engine == "memory":
        return run_in_memory(session, as_of=args.as_of, limit=args.limit)
    return run_all(session, as_of=args.as_of, limit=args.limit)

def main(argv=None):
    args = parse_args(argv)
    engine, Session = make_session(args.source, args.isolation_level)
    session = Session()

    try:
        if args.command == "check":
            if check_tables(engine):
                raise SystemExit(2)
        elif args.command == "preview":
            for row in preview(session, args.table):
                print({c.key: getattr(row, c.key) for c in inspect(row).mapper.column_attrs})
        elif args.command == "init-views":
            init_views(engine)
        elif args.command == "report":
            if not args.report:
                raise SystemExit("--report is required for the report command")
            if args.engine == "memory":
                print_report(args.report, run_in_memory(session, as_of=args.as_of, limit=args.limit)[args.report])
            else:
                print_report(args.report, run_report(session, args.report, as_of=args.as_of, limit=args.limit))
        elif args.command == "all":
            for name, rows in collect(session, args).items():
                if name in REPORTS:
                    print_report(name, rows)
        elif args.command == "validate":
            ok, problems = validate(collect(session, args), limit=args.limit)
            if not ok:
                raise SystemExit(2)
    finally:
        session.close()

if __name__ == "__main__":
    main()
