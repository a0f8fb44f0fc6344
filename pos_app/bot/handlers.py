import shlex
from datetime import date

from aiogram import Router
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.types import FSInputFile, Message, ReplyKeyboardRemove

from pos_app.bot.keyboards import main_kb, promo_kinds_kb
from pos_app.bot.states import SALES, PromoAdd
from pos_app.config import settings
from pos_app.constants import PROMO_FREE_ITEM, PROMOTION_KINDS
from pos_app.db.sqlite import get_store
from pos_app.errors import AuthError, PosError
from pos_app.services.checkout import SaleDraft, apply, finalize_sale, validate_draft, with_customer
from pos_app.services.pricing import ItemAdded, ItemRemoved, Promotion, PromotionSelected
from pos_app.services.reports import cart_text, catalog_text, promotion_label, report_for, report_text
from pos_app.services.ticket_pdf import generate_ticket_pdf
from pos_app.utils.formatters import money
from pos_app.utils.validators import parse_id, parse_money, require_positive_number

router = Router()


def _is_admin(message: Message) -> bool:
    try:
        return int(message.from_user.id) == int(settings.admin_id)
    except Exception:
        return False


def _signed_in() -> bool:
    return get_store().current_user() is not None


async def _guard(message: Message) -> bool:
    if not _is_admin(message):
        return False
    if not _signed_in():
        await message.answer("🔒 Inicia sesión primero: /login EMAIL PASSWORD")
        return False
    return True


def _draft(message: Message) -> SaleDraft | None:
    return SALES.get(message.from_user.id)


@router.message(Command("start"))
async def cmd_start(message: Message):
    if not _is_admin(message):
        return
    await message.answer("✅ Punto de venta listo. /help para ver comandos", reply_markup=main_kb())


@router.message(Command("cancel"))
async def cmd_cancel(message: Message, state: FSMContext):
    if not _is_admin(message):
        return
    await state.clear()
    await message.answer("❎ Cancelado.", reply_markup=ReplyKeyboardRemove())


@router.message(Command("help"))
async def cmd_help(message: Message):
    if not _is_admin(message):
        return

    text = (
        "<b>Punto de venta — comandos</b>\n\n"
        "<b>Sesión</b>\n"
        "/login EMAIL PASSWORD — iniciar sesión\n"
        "/logout — cerrar sesión\n\n"
        "<b>Catálogo</b>\n"
        "/catalog [CATEGORÍA] — catálogo con precios y margen\n"
        "/search TEXTO — buscar producto\n"
        "/price VARIANTE COSTO PRECIO — cambiar precios\n\n"
        "<b>Promociones</b>\n"
        "/promos — activas\n"
        "/promos_all — todas\n"
        "/promo_add — crear (asistente)\n"
        "/promo_toggle ID — activar/desactivar\n"
        "/promo_value ID VALOR — cambiar valor\n\n"
        "<b>Venta</b>\n"
        "/sale_start \"NOMBRE\" [TELÉFONO] — nueva venta\n"
        "/add VARIANTE — agregar 1 pieza\n"
        "/remove VARIANTE — quitar la línea\n"
        "/promo ID|none — aplicar promoción\n"
        "/cart — ver carrito\n"
        "/finish — registrar venta + ticket PDF\n"
        "/abandon — descartar venta\n\n"
        "<b>Reportes</b>\n"
        "/report [AAAA-MM-DD] — ventas, ingresos y ganancias del día\n"
    )
    await message.answer(text)


@router.message(Command("ping"))
async def cmd_ping(message: Message):
    if not _is_admin(message):
        return
    await message.answer("pong ✅")


# ---------------- session ----------------

@router.message(Command("login"))
async def cmd_login(message: Message):
    if not _is_admin(message):
        return

    parts = message.text.split()
    if len(parts) != 3:
        await message.answer("Formato: /login EMAIL PASSWORD")
        return

    _, email, password = parts
    try:
        session = get_store().sign_in(email, password)
    except AuthError as e:
        await message.answer(f"❌ {e}")
        return
    await message.answer(f"✅ Sesión iniciada: {session.user.email}", reply_markup=main_kb())


@router.message(Command("logout"))
async def cmd_logout(message: Message):
    if not _is_admin(message):
        return
    get_store().sign_out()
    SALES.pop(message.from_user.id, None)
    await message.answer("👋 Sesión cerrada", reply_markup=ReplyKeyboardRemove())


# ---------------- catalog ----------------

@router.message(Command("catalog"))
async def cmd_catalog(message: Message):
    if not await _guard(message):
        return

    parts = message.text.split(maxsplit=1)
    store = get_store()
    try:
        if len(parts) > 1 and parts[1].strip():
            rows = store.list_by_category(parts[1].strip())
        else:
            rows = store.list_catalog_entries()
    except PosError as e:
        await message.answer(f"❌ Error del catálogo: {e}")
        return
    await message.answer(catalog_text(rows))


@router.message(Command("search"))
async def cmd_search(message: Message):
    if not await _guard(message):
        return

    parts = message.text.split(maxsplit=1)
    if len(parts) < 2 or not parts[1].strip():
        await message.answer("Formato: /search TEXTO")
        return
    try:
        rows = get_store().search_catalog(parts[1])
    except PosError as e:
        await message.answer(f"❌ {e}")
        return
    await message.answer(catalog_text(rows))


@router.message(Command("price"))
async def cmd_price(message: Message):
    if not await _guard(message):
        return

    parts = message.text.split()
    if len(parts) != 4:
        await message.answer("Formato: /price VARIANTE COSTO PRECIO")
        return

    try:
        variant_id = parse_id(parts[1], "variante")
        cost = parse_money(parts[2], "costo")
        price = parse_money(parts[3], "precio")
        require_positive_number(price, "precio")
        entry = get_store().update_variant_prices(variant_id, cost, price)
    except PosError as e:
        await message.answer(f"❌ {e}")
        return
    await message.answer(
        f"✅ {entry.product_name} ({entry.variant_name}): costo {money(entry.unit_cost)}, precio {money(entry.unit_price)}"
    )


# ---------------- promotions ----------------

@router.message(Command("promos"))
async def cmd_promos(message: Message):
    if not await _guard(message):
        return
    rows = get_store().list_active_promotions()
    if not rows:
        await message.answer("No hay promociones activas. Crea una: /promo_add")
        return
    await message.answer("\n".join(["<b>Promociones activas:</b>"] + [promotion_label(p) for p in rows]))


@router.message(Command("promos_all"))
async def cmd_promos_all(message: Message):
    if not await _guard(message):
        return
    rows = get_store().list_promotions()
    if not rows:
        await message.answer("No hay promociones creadas. Crea la primera: /promo_add")
        return
    await message.answer("\n".join(["<b>Promociones:</b>"] + [promotion_label(p) for p in rows]))


@router.message(Command("promo_toggle"))
async def cmd_promo_toggle(message: Message):
    if not await _guard(message):
        return

    parts = message.text.split()
    if len(parts) != 2:
        await message.answer("Formato: /promo_toggle ID")
        return
    try:
        store = get_store()
        promo = store.get_promotion(parse_id(parts[1]))
        promo = store.set_promotion_active(promo.id, not promo.active)
    except PosError as e:
        await message.answer(f"❌ {e}")
        return
    await message.answer(f"✅ {promotion_label(promo)}")


@router.message(Command("promo_value"))
async def cmd_promo_value(message: Message):
    if not await _guard(message):
        return

    parts = message.text.split()
    if len(parts) != 3:
        await message.answer("Formato: /promo_value ID VALOR")
        return
    try:
        value = parse_money(parts[2], "valor")
        require_positive_number(value, "valor")
        promo = get_store().update_promotion(parse_id(parts[1]), value=value)
    except PosError as e:
        await message.answer(f"❌ {e}")
        return
    await message.answer(f"✅ {promotion_label(promo)}")


@router.message(Command("promo_add"))
async def cmd_promo_add(message: Message, state: FSMContext):
    if not await _guard(message):
        return
    await state.clear()
    await state.set_state(PromoAdd.waiting_name)
    await message.answer(
        "Nueva promoción.\n\n1/3) Nombre de la promoción\nCancelar: /cancel",
        reply_markup=ReplyKeyboardRemove(),
    )


@router.message(PromoAdd.waiting_name)
async def promo_add_name(message: Message, state: FSMContext):
    if not _is_admin(message):
        return

    name = (message.text or "").strip()
    if not name or name.startswith("/"):
        await message.answer("El nombre es requerido. Cancelar: /cancel")
        return

    await state.update_data(name=name)
    await state.set_state(PromoAdd.waiting_kind)
    await message.answer("2/3) Tipo de promoción", reply_markup=promo_kinds_kb())


@router.message(PromoAdd.waiting_kind)
async def promo_add_kind(message: Message, state: FSMContext):
    if not _is_admin(message):
        return

    kind = (message.text or "").strip()
    if kind not in PROMOTION_KINDS:
        await message.answer(f"Elige uno de: {', '.join(PROMOTION_KINDS)}", reply_markup=promo_kinds_kb())
        return

    await state.update_data(kind=kind)
    await state.set_state(PromoAdd.waiting_value)
    await message.answer(
        "3/3) Valor (porcentaje, monto fijo o piezas gratis). Ejemplo: 15\nCancelar: /cancel",
        reply_markup=ReplyKeyboardRemove(),
    )


@router.message(PromoAdd.waiting_value)
async def promo_add_value(message: Message, state: FSMContext):
    if not _is_admin(message):
        return

    try:
        value = parse_money(message.text or "", "valor")
        require_positive_number(value, "valor")
    except PosError:
        await message.answer("El valor debe ser mayor a 0, por ejemplo 15\nCancelar: /cancel")
        return

    data = await state.get_data()
    if data.get("kind") == PROMO_FREE_ITEM:
        await state.update_data(value=str(value))
        await state.set_state(PromoAdd.waiting_threshold)
        await message.answer("Piezas mínimas en el carrito ('-' = 5)\nCancelar: /cancel")
        return

    await _save_promotion(message, state, Promotion(name=data["name"], kind=data["kind"], value=value))


@router.message(PromoAdd.waiting_threshold)
async def promo_add_threshold(message: Message, state: FSMContext):
    if not _is_admin(message):
        return

    raw = (message.text or "").strip()
    threshold = None
    if raw != "-":
        try:
            threshold = parse_id(raw, "piezas")
            require_positive_number(threshold, "piezas")
        except PosError:
            await message.answer("Escribe un número entero o '-'\nCancelar: /cancel")
            return

    data = await state.get_data()
    promo = Promotion(
        name=data["name"],
        kind=data["kind"],
        value=parse_money(data["value"]),
        free_item_threshold=threshold,
    )
    await _save_promotion(message, state, promo)


async def _save_promotion(message: Message, state: FSMContext, promo: Promotion) -> None:
    try:
        created = get_store().create_promotion(promo)
        await message.answer(f"✅ Promoción creada: {promotion_label(created)}")
    except PosError as e:
        await message.answer(f"❌ Error al guardar la promoción: {e}")
    finally:
        await state.clear()


# ---------------- sale ----------------

@router.message(Command("sale_start"))
async def cmd_sale_start(message: Message):
    if not await _guard(message):
        return

    try:
        args = shlex.split(message.text)[1:]
    except ValueError:
        args = []
    if not args:
        await message.answer('Formato: /sale_start "NOMBRE" [TELÉFONO]')
        return

    phone = ""
    if len(args) > 1 and args[-1].lstrip("+").isdigit():
        phone = args.pop()
    name = " ".join(args)

    SALES[message.from_user.id] = with_customer(SaleDraft(), name, phone)
    await message.answer(f"🧺 Venta iniciada. Cliente: <b>{name}</b>", reply_markup=main_kb())


@router.message(Command("add"))
async def cmd_add(message: Message):
    if not await _guard(message):
        return

    draft = _draft(message)
    if draft is None:
        await message.answer('Primero inicia una venta: /sale_start "NOMBRE"')
        return

    parts = message.text.split()
    if len(parts) != 2:
        await message.answer("Formato: /add VARIANTE")
        return

    try:
        entry = get_store().get_catalog_entry(parse_id(parts[1], "variante"))
    except PosError as e:
        await message.answer(f"❌ {e}")
        return

    draft = apply(draft, ItemAdded(entry))
    SALES[message.from_user.id] = draft
    await message.answer(
        f"✅ {entry.product_name} ({entry.variant_name}) agregado. Total: {money(draft.cart.totals.total)}"
    )


@router.message(Command("remove"))
async def cmd_remove(message: Message):
    if not await _guard(message):
        return

    draft = _draft(message)
    if draft is None:
        await message.answer('Primero inicia una venta: /sale_start "NOMBRE"')
        return

    parts = message.text.split()
    if len(parts) != 2:
        await message.answer("Formato: /remove VARIANTE")
        return
    try:
        variant_id = parse_id(parts[1], "variante")
    except PosError as e:
        await message.answer(f"❌ {e}")
        return

    draft = apply(draft, ItemRemoved(variant_id))
    SALES[message.from_user.id] = draft
    await message.answer(cart_text(draft.cart))


@router.message(Command("promo"))
async def cmd_promo(message: Message):
    if not await _guard(message):
        return

    draft = _draft(message)
    if draft is None:
        await message.answer('Primero inicia una venta: /sale_start "NOMBRE"')
        return

    parts = message.text.split()
    if len(parts) != 2:
        await message.answer("Formato: /promo ID o /promo none")
        return

    promo = None
    if parts[1].lower() not in ("none", "0", "-"):
        try:
            promo = get_store().get_promotion(parse_id(parts[1]))
        except PosError as e:
            await message.answer(f"❌ {e}")
            return
        if not promo.active:
            await message.answer("❌ La promoción no está activa")
            return

    draft = apply(draft, PromotionSelected(promo))
    SALES[message.from_user.id] = draft
    await message.answer(cart_text(draft.cart))


@router.message(Command("cart"))
async def cmd_cart(message: Message):
    if not await _guard(message):
        return

    draft = _draft(message)
    if draft is None:
        await message.answer('No hay venta en curso: /sale_start "NOMBRE"')
        return
    await message.answer(f"Cliente: <b>{draft.customer_name}</b>\n{cart_text(draft.cart)}")


@router.message(Command("abandon"))
async def cmd_abandon(message: Message):
    if not await _guard(message):
        return
    SALES.pop(message.from_user.id, None)
    await message.answer("🗑 Venta descartada")


@router.message(Command("finish"))
async def cmd_finish(message: Message):
    if not await _guard(message):
        return

    draft = _draft(message)
    if draft is None:
        await message.answer('No hay venta en curso: /sale_start "NOMBRE"')
        return

    err = validate_draft(draft)
    if err:
        await message.answer(f"❌ {err}")
        return

    store = get_store()
    ok, result = finalize_sale(store, draft)
    if not ok:
        # the cart stays as it is so the sale can be retried
        await message.answer(f"❌ Error procesando la venta: {result}\nPuedes reintentar con /finish")
        return

    SALES.pop(message.from_user.id, None)

    try:
        pdf_path = generate_ticket_pdf(store.get_sale(result.sale_id))
        await message.answer_document(FSInputFile(pdf_path))
    except Exception as e:
        await message.answer(f"⚠️ Venta registrada, pero el PDF no se generó: {e}")

    await message.answer(
        f"✅ ¡Venta procesada! Ticket: <b>{result.ticket_number}</b>\n"
        f"Cliente: {draft.customer_name}\n"
        f"Total: {money(draft.cart.totals.total)}"
    )


# ---------------- reports ----------------

@router.message(Command("report"))
async def cmd_report(message: Message):
    if not await _guard(message):
        return

    parts = message.text.split()
    day = None
    if len(parts) > 1:
        try:
            day = date.fromisoformat(parts[1])
        except ValueError:
            await message.answer("Formato: /report AAAA-MM-DD")
            return
    try:
        report = report_for(get_store(), day)
    except PosError as e:
        await message.answer(f"❌ {e}")
        return
    await message.answer(report_text(report))
