# bulk_generate_pdfs.py
import argparse
from pathlib import Path

from config import Config
from invoice_templates import build_default_registry
from log_config import configure_logging
from models import Base, make_engine, make_session_factory, Invoice
from pdf_service import default_pdf_renderer, find_export, load_invoice_document, write_pdf
from rendering import RenderSuccess


def main(argv=None):
    parser = argparse.ArgumentParser(description="Bulk render invoice PDFs into the exports folder.")
    parser.add_argument("--year", type=str, default="", help="Only invoices numbered for a given year (YYYY).")
    parser.add_argument("--user", type=int, default=None, help="Only invoices owned by this user id.")
    parser.add_argument("--template", type=str, default=None, help="Template id (default: owner preference).")
    parser.add_argument("--all", action="store_true", help="Overwrite PDFs that already exist.")
    parser.add_argument("--out", type=str, default=Config.EXPORTS_DIR, help="Output folder.")
    args = parser.parse_args(argv)

    configure_logging()

    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)

    target_year = (args.year or "").strip()
    if target_year and not (target_year.isdigit() and len(target_year) == 4):
        raise SystemExit("Year must be 4 digits, e.g. --year 2025")

    engine = make_engine(Config.SQLALCHEMY_DATABASE_URI, echo=Config.SQLALCHEMY_ECHO)
    Base.metadata.create_all(engine)
    SessionLocal = make_session_factory(engine)
    renderer = default_pdf_renderer(build_default_registry())

    with SessionLocal() as s:
        q = s.query(Invoice).order_by(Invoice.created_at.asc())
        if target_year:
            q = q.filter(Invoice.service_name.like(f"Invoice #INV-{target_year}-%"))
        if args.user is not None:
            q = q.filter(Invoice.user_id == args.user)
        invoices = q.all()

        if not invoices:
            print("No invoices found for the given filter.")
            return

        total = len(invoices)
        generated = 0
        skipped = 0
        failed = 0

        for i, inv in enumerate(invoices, start=1):
            document, branding = load_invoice_document(s, inv.id)
            label = document.meta.number
            existing = find_export(out_dir, document.meta.number, document.client.name)
            if existing is not None and not args.all:
                skipped += 1
                print(f"[{i}/{total}] SKIP  {label} (already exported as {existing.name})")
                continue

            result = renderer.render(document, args.template, branding)
            if not isinstance(result, RenderSuccess):
                failed += 1
                print(f"[{i}/{total}] FAIL  {label}  ({result.message})")
                continue

            path = write_pdf(result, out_dir)
            generated += 1
            note = f"  [without {', '.join(result.degraded)}]" if result.is_degraded else ""
            print(f"[{i}/{total}] DONE  {label} -> {path}{note}")

        print("\n✅ Bulk PDF generation complete.")
        print(f"Generated: {generated}")
        print(f"Skipped:   {skipped}")
        print(f"Failed:    {failed}")
        print(f"Exports:   {out_dir}")


if __name__ == "__main__":
    main()
