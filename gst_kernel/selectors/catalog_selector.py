"""
CatalogSelector -- read-only queries over the HSN/SAC catalog.

Responsibility:
    Lookup by code, children in code order, and the hierarchy walk from a
    code up to its chapter root.  Also the administrative catalog reads:
    chapters, headings, level listing, exemption listing, search and
    statistics.

Architecture position:
    Kernel > Selectors -- read side.  The resolution algorithm never walks
    the hierarchy; ``hierarchy()`` is exposed for callers that implement
    their own heading/chapter fallback.

Failure modes:
    - ClassificationCodeNotFoundError from ``lookup`` and ``hierarchy``.
"""

from sqlalchemy import func, or_, select

from gst_kernel.domain.dtos import CatalogStatistics, ClassificationCodeInfo, Page
from gst_kernel.exceptions import ClassificationCodeNotFoundError
from gst_kernel.models.classification_code import ClassificationCode
from gst_kernel.selectors.base import BaseSelector


class CatalogSelector(BaseSelector[ClassificationCode]):
    """Catalog read model."""

    def find(self, code: str) -> ClassificationCodeInfo | None:
        row = self._row(code)
        return row.to_dto() if row else None

    def lookup(self, code: str) -> ClassificationCodeInfo:
        """
        Return the catalog entry for ``code``.

        Raises:
            ClassificationCodeNotFoundError: If the code is not in the catalog.
        """
        row = self._row(code)
        if row is None:
            raise ClassificationCodeNotFoundError(code)
        return row.to_dto()

    def children(self, parent_code: str) -> list[ClassificationCodeInfo]:
        """
        Direct children of ``parent_code``, ordered by code ascending.

        A child either names the parent via parent_id, or (when parent_id is
        unset) is one level deeper and starts with the parent's digits.
        """
        parent = self.lookup(parent_code)
        child_length = len(parent.code) + 2
        rows = self.session.execute(
            select(ClassificationCode)
            .where(
                or_(
                    ClassificationCode.parent_id == parent.id,
                    (ClassificationCode.parent_id.is_(None))
                    & (ClassificationCode.code.like(f"{parent.code}%"))
                    & (func.length(ClassificationCode.code) == child_length),
                )
            )
            .order_by(ClassificationCode.code)
        ).scalars()
        return [r.to_dto() for r in rows if r.id != parent.id]

    def hierarchy(self, code: str) -> list[ClassificationCodeInfo]:
        """
        The code followed by its ancestors, ending at the chapter root.

        Follows parent_id where set, otherwise the code's own 6 and 4 digit
        prefixes.  Ancestors missing from the catalog are skipped.

        Raises:
            ClassificationCodeNotFoundError: If ``code`` itself is unknown.
        """
        current = self.lookup(code)
        chain = [current]
        seen = {current.id}
        while current.level > 1:
            parent = None
            if current.parent_id is not None:
                row = self.session.get(ClassificationCode, current.parent_id)
                parent = row.to_dto() if row else None
            if parent is None:
                for prefix_len in range(len(current.code) - 2, 3, -2):
                    parent = self.find(current.code[:prefix_len])
                    if parent is not None:
                        break
            if parent is None or parent.id in seen:
                break
            chain.append(parent)
            seen.add(parent.id)
            current = parent
        return chain

    def chapters(self) -> list[str]:
        rows = self.session.execute(
            select(ClassificationCode.chapter)
            .where(ClassificationCode.is_active.is_(True))
            .distinct()
            .order_by(ClassificationCode.chapter)
        ).scalars()
        return list(rows)

    def headings(self, chapter: str) -> list[ClassificationCodeInfo]:
        return self.by_level(1, chapter=chapter)

    def by_level(self, level: int, chapter: str | None = None) -> list[ClassificationCodeInfo]:
        stmt = select(ClassificationCode).where(
            ClassificationCode.level == level,
            ClassificationCode.is_active.is_(True),
        )
        if chapter is not None:
            stmt = stmt.where(ClassificationCode.chapter == chapter)
        rows = self.session.execute(stmt.order_by(ClassificationCode.code)).scalars()
        return [r.to_dto() for r in rows]

    def with_exemption(self) -> list[ClassificationCodeInfo]:
        rows = self.session.execute(
            select(ClassificationCode)
            .where(
                ClassificationCode.exemption_available.is_(True),
                ClassificationCode.is_active.is_(True),
            )
            .order_by(ClassificationCode.code)
        ).scalars()
        return [r.to_dto() for r in rows]

    def search(
        self,
        term: str | None = None,
        *,
        chapter: str | None = None,
        level: int | None = None,
        active_only: bool = True,
        page: int = 0,
        size: int = 20,
    ) -> Page:
        """Filter by code prefix or description substring, then paginate."""
        stmt = select(ClassificationCode)
        if term:
            like = f"%{term.strip().lower()}%"
            stmt = stmt.where(
                or_(
                    ClassificationCode.code.like(f"{term.strip()}%"),
                    func.lower(ClassificationCode.description).like(like),
                )
            )
        if chapter is not None:
            stmt = stmt.where(ClassificationCode.chapter == chapter)
        if level is not None:
            stmt = stmt.where(ClassificationCode.level == level)
        if active_only:
            stmt = stmt.where(ClassificationCode.is_active.is_(True))

        total = self.session.execute(
            select(func.count()).select_from(stmt.subquery())
        ).scalar_one()
        rows = self.session.execute(
            stmt.order_by(ClassificationCode.code).offset(page * size).limit(size)
        ).scalars()
        return Page(
            items=tuple(r.to_dto() for r in rows),
            page=page,
            size=size,
            total=total,
        )

    def statistics(self) -> CatalogStatistics:
        total = self.session.execute(
            select(func.count(ClassificationCode.id))
        ).scalar_one()
        active = self.session.execute(
            select(func.count(ClassificationCode.id)).where(
                ClassificationCode.is_active.is_(True)
            )
        ).scalar_one()
        by_level = dict(
            self.session.execute(
                select(ClassificationCode.level, func.count(ClassificationCode.id))
                .where(ClassificationCode.is_active.is_(True))
                .group_by(ClassificationCode.level)
            ).all()
        )
        exempt = self.session.execute(
            select(func.count(ClassificationCode.id)).where(
                ClassificationCode.is_active.is_(True),
                ClassificationCode.exemption_available.is_(True),
            )
        ).scalar_one()
        return CatalogStatistics(
            total_codes=total,
            active_codes=active,
            codes_by_level={int(k): v for k, v in by_level.items()},
            chapters=len(self.chapters()),
            with_exemption=exempt,
        )

    def _row(self, code: str) -> ClassificationCode | None:
        return self.session.execute(
            select(ClassificationCode).where(ClassificationCode.code == code.strip())
        ).scalar_one_or_none()
