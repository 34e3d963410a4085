"""User-facing notification texts."""

from sales_ledger.models.records import RecordKind


AUTH_FAILED = "Error de autenticación. Intente recargar la aplicación."

LOAD_FAILED = {
    RecordKind.SALES: "Error al cargar las ventas.",
    RecordKind.EXPENSES: "Error al cargar los gastos.",
}

MISSING_FIELDS = {
    RecordKind.SALES: "Por favor, complete todos los campos de la venta.",
    RecordKind.EXPENSES: "Por favor, complete todos los campos del gasto.",
}

ADDED = {
    RecordKind.SALES: "Venta registrada con éxito.",
    RecordKind.EXPENSES: "Gasto registrado con éxito.",
}

ADD_FAILED = {
    RecordKind.SALES: "Error al registrar la venta.",
    RecordKind.EXPENSES: "Error al registrar el gasto.",
}

DELETED = {
    RecordKind.SALES: "Venta eliminada.",
    RecordKind.EXPENSES: "Gasto eliminado.",
}

DELETE_FAILED = {
    RecordKind.SALES: "Error al eliminar la venta.",
    RecordKind.EXPENSES: "Error al eliminar el gasto.",
}
