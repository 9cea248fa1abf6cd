import logging
from dataclasses import dataclass
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from app.core.config import settings
from app.models.organization.business import Business
from app.models.organization.branch import Branch
from app.models.inventory.product import Product

logger = logging.getLogger(__name__)

DEMO_BUSINESS_NAME = "Demo Retail"


@dataclass(frozen=True)
class SeedData:
    business_id: int
    main_branch_id: int
    warehouse_branch_id: int
    product_ids: dict


async def create_initial_data(session: AsyncSession) -> SeedData:
    """Create a demo business with two branches and a few products"""
    try:
        logger.info("📋 Creating initial data...")

        business = await create_demo_business(session)
        branches = await create_initial_branches(session, business)
        products = await create_initial_products(session, business)

        await session.commit()
        logger.info("✅ Initial data created successfully")
        return SeedData(
            business_id=business.id,
            main_branch_id=branches["MAIN"].id,
            warehouse_branch_id=branches["WH"].id,
            product_ids={sku: product.id for sku, product in products.items()}
        )

    except Exception as e:
        logger.error(f"❌ Error creating initial data: {str(e)}")
        await session.rollback()
        raise

async def create_demo_business(session: AsyncSession) -> Business:
    result = await session.execute(select(Business).where(Business.name == DEMO_BUSINESS_NAME))
    business = result.scalar_one_or_none()

    if not business:
        business = Business(name=DEMO_BUSINESS_NAME, base_currency=settings.DEFAULT_CURRENCY, is_active=True)
        session.add(business)
        await session.flush()
        logger.info(f"✅ Business created: {business.name}")
    return business

async def create_initial_branches(session: AsyncSession, business: Business) -> dict:
    branches_data = [
        {"name": "Main Store", "code": "MAIN"},
        {"name": "Central Warehouse", "code": "WH"},
    ]

    branches = {}
    for branch_data in branches_data:
        result = await session.execute(
            select(Branch).where(Branch.business_id == business.id, Branch.code == branch_data["code"])
        )
        branch = result.scalar_one_or_none()
        if not branch:
            branch = Branch(business_id=business.id, is_active=True, **branch_data)
            session.add(branch)
            await session.flush()
        branches[branch.code] = branch
    return branches

async def create_initial_products(session: AsyncSession, business: Business) -> dict:
    products_data = [
        {"name": "Espresso Beans 1kg", "sku": "COF-001", "minimum_stock_level": Decimal("10")},
        {"name": "Paper Cups 12oz", "sku": "CUP-012", "minimum_stock_level": Decimal("100")},
        {"name": "Oat Milk 1L", "sku": "MLK-OAT", "minimum_stock_level": Decimal("0"), "allow_negative_stock": True},
    ]

    products = {}
    for product_data in products_data:
        result = await session.execute(
            select(Product).where(Product.business_id == business.id, Product.sku == product_data["sku"])
        )
        product = result.scalar_one_or_none()
        if not product:
            product = Product(business_id=business.id, **product_data)
            session.add(product)
            await session.flush()
        products[product.sku] = product
    return products
